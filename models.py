from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from typing import Optional, List

class LicenseStatus(str, Enum):
    UNSET = ""
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"
    DEACTIVATED = "deactivated"
    SITE_INACTIVE = "site_inactive"

class LicenseRecord(BaseModel):
    key: str = ""
    status: str = LicenseStatus.UNSET.value

class ActivationResult(BaseModel):
    """Decoded body of an EDD ``activate_license``/``deactivate_license`` call."""

    model_config = ConfigDict(extra="ignore")

    license: str
    site_count: int = 0
    license_limit: int = 0
    expires: Optional[datetime] = None
    error: Optional[str] = None

    @field_validator("site_count", "license_limit", mode="wrap")
    @classmethod
    def _count_or_zero(cls, value, handler):
        # EDD reports unlimited licenses as 0 or "unlimited"
        try:
            return handler(value)
        except ValidationError:
            return 0

    @field_validator("expires", mode="wrap")
    @classmethod
    def _unreadable_date_never_expires(cls, value, handler):
        # "lifetime", MySQL zero dates and the like
        if value in (None, "", False):
            return None
        try:
            return handler(value)
        except ValidationError:
            return None

class Notice(BaseModel):
    setting: str
    code: str = "license-notice"
    message: str
    type: str = "updated"  # updated | error

class LicenseFormView(BaseModel):
    key_field: str
    nonce_field: str
    action_field: str
    nonce: str
    visible_key: str
    readonly: bool
    status: str
    is_valid: bool
    key_pinned: bool

class LicenseStatusResponse(BaseModel):
    status: str
    isValid: bool
    licenseKey: str
    keyPinned: bool
    itemName: str

class LicenseActionResponse(BaseModel):
    success: Optional[bool] = None
    status: str
    notices: List[Notice] = []
    form: Optional[LicenseFormView] = None

class HealthCheckResponse(BaseModel):
    status: str
    service: str
    version: str
    itemName: Optional[str] = None
    licenseStatus: Optional[str] = None
