from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from config import settings, configure_logging, product_config_from_settings
from database import SqlOptionStore, get_db, init_db
from exceptions import InvalidNonceError
from license_client import LicenseClient
from models import (
    HealthCheckResponse,
    LicenseActionResponse,
    LicenseFormView,
    LicenseStatusResponse,
    Notice,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    yield


app = FastAPI(
    title="EDD License Client Service",
    description="License key activation and admin glue for a commercial plugin",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_license_client(db: Session = Depends(get_db)) -> LicenseClient:
    return LicenseClient(SqlOptionStore(db), product_config_from_settings())


def _action_response(client: LicenseClient, success) -> dict:
    return {
        "success": success,
        "status": client.get_status(),
        "notices": client.notifier.all(),
    }


# API Endpoints
@app.get("/api/license/status", response_model=LicenseStatusResponse)
async def get_license_status(client: LicenseClient = Depends(get_license_client)):
    """
    Get current license status.

    The key is returned obfuscated once it has been accepted.
    """
    return client.describe()

@app.get("/api/license/notices", response_model=List[Notice])
async def get_admin_notices(client: LicenseClient = Depends(get_license_client)):
    return client.admin_notices()

@app.get("/api/license/form", response_model=LicenseFormView)
async def get_license_form(client: LicenseClient = Depends(get_license_client)):
    """
    Describe the license form: field names, a fresh anti-forgery token,
    the visible key and whether the key input is read-only.
    """
    return client.license_form()

@app.post("/api/license/form", response_model=LicenseActionResponse)
async def submit_license_form(
    request: Request,
    client: LicenseClient = Depends(get_license_client)
):
    """
    Handle a license form post.

    Saves the key and activates it when the license is not valid yet,
    otherwise runs the activate/deactivate action that was clicked.
    """
    form = await request.form()

    try:
        result = await client.handle_form_submission(form)
    except InvalidNonceError as e:
        raise HTTPException(status_code=403, detail=e.message)

    # Re-rendered form, showing a refused key in clear for correction
    return {**_action_response(client, result), "form": client.license_form()}

@app.post("/api/license/activate", response_model=LicenseActionResponse)
async def activate_license(client: LicenseClient = Depends(get_license_client)):
    result = await client.activate()

    if not result:
        detail = [notice.message for notice in client.notifier.all()] or ["No license key entered"]
        raise HTTPException(status_code=400, detail=detail)

    return _action_response(client, result)

@app.post("/api/license/deactivate", response_model=LicenseActionResponse)
async def deactivate_license(client: LicenseClient = Depends(get_license_client)):
    result = await client.deactivate()
    return _action_response(client, result)

@app.get("/health", response_model=HealthCheckResponse)
async def health_check(client: LicenseClient = Depends(get_license_client)):
    """
    Health check endpoint for container orchestration.
    """
    return {
        "status": "healthy",
        "service": "license-client",
        "version": settings.APP_VERSION,
        "itemName": client.product.item_name,
        "licenseStatus": client.get_status(),
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
