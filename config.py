import logging
import re
from typing import Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # License Server Configuration
    LICENSE_API_URL: str = "https://shop.example.com"
    LICENSE_API_TIMEOUT: int = 20
    LICENSE_API_VERIFY_SSL: bool = False

    # Product Info
    ITEM_NAME: str = "Example Plugin"
    ITEM_VERSION: str = "1.0.0"
    ITEM_URL: str = ""  # Defaults to the shop url
    LICENSE_PAGE_URL: str = "/admin/license"
    ITEM_AUTHOR: str = "Example"

    # Environment variable holding a pinned license key, derived from ITEM_NAME when empty
    LICENSE_CONSTANT_NAME: str = ""

    # Database
    DATABASE_URL: str = "sqlite:///./license_client.db"

    # Form security
    SECRET_KEY: str = "change-me"
    NONCE_LIFETIME_SECONDS: int = 86400

    LOG_LEVEL: str = "INFO"
    APP_VERSION: str = "1.0.0"

    class Config:
        env_file = ".env"

settings = Settings()


def sanitize_key(value: str) -> str:
    """Lower-case and keep only ``[a-z0-9_-]``."""
    return re.sub(r"[^a-z0-9_\-]", "", value.lower())


def slugify(value: str) -> str:
    """
    Turn a product name into an option prefix.

    Whitespace becomes a dash, other punctuation is dropped and runs of
    dashes collapse, so ``"My Plugin_"`` gives ``"my-plugin_"``.
    """
    slug = value.strip().lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9_\-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


class ProductConfig(BaseModel):
    api_url: str
    item_name: str
    version: str = "1.0.0"
    item_url: str = ""
    license_page_url: str = "#"
    author: str = ""
    override_name: str = ""

    @property
    def prefix(self) -> str:
        return slugify(self.item_name + "_")

    @property
    def option_name(self) -> str:
        return f"{self.prefix}license"

    @property
    def store_url(self) -> str:
        """URL on which users can purchase, upgrade or renew their license."""
        return self.item_url or self.api_url

    def default_override_name(self) -> str:
        return sanitize_key(self.item_name).replace("-", "").upper() + "_LICENSE"


def product_config_from_settings(source: Optional[Settings] = None) -> ProductConfig:
    source = source or settings
    return ProductConfig(
        api_url=source.LICENSE_API_URL,
        item_name=source.ITEM_NAME,
        version=source.ITEM_VERSION,
        item_url=source.ITEM_URL,
        license_page_url=source.LICENSE_PAGE_URL,
        author=source.ITEM_AUTHOR,
        override_name=source.LICENSE_CONSTANT_NAME,
    )


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    # httpx logs every request url at INFO, license key included
    logging.getLogger("httpx").setLevel(logging.WARNING)
