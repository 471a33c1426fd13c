"""
Configuration loader for the insurance request service
"""

import os
import yaml
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import logging

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent


class BrandingConfig(BaseModel):
    """Company branding printed on invoices"""

    brand_prefix: str = "Mandi"
    brand_suffix: str = "Plus"
    brand_color: str = "#7C3AED"
    company_name: str = "ENP FARMS PVT LTD"
    company_address: str = ""
    claim_email: str = ""
    claim_phone: str = ""


class InvoiceLayoutConfig(BaseModel):
    """Fixed invoice values"""

    hsn_code: str = "08011910"
    terms: str = "CUSTOM"
    currency_prefix: str = "Rs."
    image_placeholder: str = "CUSTOMER WILL UPDATE TOMORROW"


class TermsSection(BaseModel):
    title: str
    items: List[str] = Field(default_factory=list)


class InvoiceConfig(BaseModel):
    """Complete invoice configuration"""

    branding: BrandingConfig = Field(default_factory=BrandingConfig)
    invoice: InvoiceLayoutConfig = Field(default_factory=InvoiceLayoutConfig)
    terms: List[TermsSection] = Field(default_factory=list)


class AppSettings(BaseSettings):
    """Process-wide settings read from the environment (APP_ENV, PORT, DATABASE_URL, ...)"""

    # .env is loaded by load_dotenv() in src/api/main.py
    model_config = SettingsConfigDict(env_file=None, extra="ignore", case_sensitive=False, env_ignore_empty=True)

    app_env: str = "development"
    port: int = Field(default=5000, ge=1, le=65535)
    app_url: str = ""
    frontend_url: str = "http://localhost:3000"
    database_url: Optional[str] = None

    invoices_dir: Path = PROJECT_ROOT / "invoices"
    uploads_dir: Path = PROJECT_ROOT / "uploads"
    temp_dir: Path = PROJECT_ROOT / "temp"

    payment_link_base: str = "https://razorpay.me/temp-link-"
    image_download_timeout: float = Field(default=10.0, gt=0)

    chatrace_api_url: str = "https://api.chatrace.com/v1"
    chatrace_api_key: str = ""
    chatrace_bot_id: str = ""
    integrations_mode: str = ""
    notification_timeout: float = Field(default=15.0, gt=0)

    rate_limit_max_requests: int = Field(default=100, ge=0)
    rate_limit_window_seconds: float = Field(default=15 * 60, gt=0)

    @field_validator("database_url", mode="before")
    @classmethod
    def _blank_database_url(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    @property
    def public_url(self) -> str:
        return (self.app_url or f"http://localhost:{self.port}").rstrip("/")

    def use_real_messaging(self) -> bool:
        mode = self.integrations_mode.strip().lower()
        if mode in {"real", "live"}:
            return True
        if mode in {"mock", "test"}:
            return False
        return bool(self.chatrace_api_key)


_BRANDING_ENV: Dict[str, str] = {
    "INVOICE_COMPANY_NAME": "company_name",
    "INVOICE_COMPANY_ADDRESS": "company_address",
    "INVOICE_CLAIM_EMAIL": "claim_email",
    "INVOICE_CLAIM_PHONE": "claim_phone",
}


def load_settings(environ: Optional[Dict[str, str]] = None) -> AppSettings:
    """
    Build AppSettings from environment variables

    Args:
        environ: Mapping to read from. Defaults to os.environ

    Returns:
        Validated AppSettings object

    Raises:
        ValidationError: If a value cannot be coerced to its field type
    """
    try:
        if environ is None:
            return AppSettings()
        values = {
            key.lower(): value
            for key, value in environ.items()
            if key.lower() in AppSettings.model_fields and str(value).strip()
        }
        # model_validate skips the environment sources, so only `environ` is read
        return AppSettings.model_validate(values)
    except ValidationError as e:
        logger.error(f"Invalid environment configuration: {e}")
        raise


def load_invoice_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> InvoiceConfig:
    """
    Load invoice configuration from YAML, then apply branding overrides from the environment

    Args:
        config_path: Path to config file. Defaults to config/invoice_config.yml
        environ: Mapping to read overrides from. Defaults to os.environ

    Returns:
        Validated InvoiceConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If config doesn't match schema
    """
    if config_path is None:
        config_path = PROJECT_ROOT / "config" / "invoice_config.yml"

    if not config_path.exists():
        raise FileNotFoundError(f"Invoice config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    environ = os.environ if environ is None else environ
    branding = dict(config_data.get("branding") or {})
    for key, field in _BRANDING_ENV.items():
        value = environ.get(key, "").strip()
        if value:
            branding[field] = value
    config_data["branding"] = branding

    try:
        config = InvoiceConfig(**config_data)
        logger.info(f"Loaded invoice configuration from {config_path}")
        return config
    except ValidationError as e:
        logger.error(f"Invoice configuration validation failed: {e}")
        raise
