"""
Configuration management for CJ Fulfillment.

Provides centralized configuration loading and validation using Pydantic models.
Settings are read from environment variables (and an optional .env file) and
grouped into typed sub-configurations for the supplier API, retail pricing,
the storefront status-email hook and general application behaviour.
"""

from datetime import datetime
from typing import Optional, Dict, Any

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

DEFAULT_CJ_API_URL = "https://developers.cjdropshipping.com/api2.0"
DEFAULT_TRACKING_URL_BASE = "https://www.cjpacket.com/?trackingNumber="


def _cj_env(name: str) -> AliasChoices:
    """Accept both CJ_DROPSHIPPING_<NAME> and CJDROPSHIPPING_<NAME>."""
    return AliasChoices(f"CJ_DROPSHIPPING_{name}", f"CJDROPSHIPPING_{name}")


class CJDropshippingConfig(BaseModel):
    """CJ Dropshipping API configuration."""

    user_id: str = Field(default="", description="CJ account user id (request signing)")
    key: str = Field(default="", description="CJ API key (request signing)")
    secret: str = Field(default="", description="CJ API secret (request signing)")
    email: str = Field(default="", description="CJ login email")
    password: str = Field(default="", description="CJ login password")
    api_url: str = Field(default=DEFAULT_CJ_API_URL, description="CJ API base URL")
    timeout: float = Field(default=30.0, description="Business API request timeout in seconds")
    auth_timeout: float = Field(default=15.0, description="Authentication request timeout in seconds")
    client_name: str = Field(default="CJFulfillment/1.0", description="User-Agent sent to CJ")
    default_country_code: str = Field(default="ZA", description="Fallback destination country")
    origin_country_code: str = Field(default="CN", description="Warehouse country for freight quotes")

    @field_validator('timeout', 'auth_timeout')
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator('default_country_code', 'origin_country_code')
    @classmethod
    def validate_country_code(cls, v):
        v = (v or "").strip().upper()
        if len(v) != 2:
            raise ValueError("Country code must be a 2-letter code")
        return v

    @property
    def has_credentials(self) -> bool:
        """Whether login credentials are configured."""
        return bool(self.email and self.password)

    @property
    def can_sign(self) -> bool:
        """Whether request-signing material is configured."""
        return bool(self.user_id and self.key and self.secret)


class PricingConfig(BaseModel):
    """Retail pricing rules applied to supplier prices."""

    price_multiplier: float = Field(default=2.5, description="Retail price = supplier price x multiplier")
    compare_at_multiplier: float = Field(default=3.0, description="Compare-at price = source price x multiplier")

    @field_validator('price_multiplier', 'compare_at_multiplier')
    @classmethod
    def validate_multiplier(cls, v):
        if v <= 0:
            raise ValueError("Price multipliers must be positive")
        return v


class StorefrontConfig(BaseModel):
    """Storefront integration used for customer status emails."""

    url: str = Field(default="", description="Public storefront base URL")
    status_email_secret: str = Field(default="", description="Shared secret for the status email hook")
    tracking_url_base: str = Field(default=DEFAULT_TRACKING_URL_BASE, description="Public tracking page prefix")
    timeout: float = Field(default=10.0, description="Status email request timeout in seconds")

    @property
    def status_emails_enabled(self) -> bool:
        return bool(self.url and self.status_email_secret)


class ApplicationConfig(BaseModel):
    """General application configuration."""

    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str = Field(default="./logs", description="Log files directory")
    debug_mode: bool = Field(default=False, description="Debug mode flag")
    database_url: str = Field(default="sqlite:///./cj_fulfillment.db", description="Orders database URL")
    status_sync_interval_minutes: int = Field(default=60, description="Tracking reconciliation interval")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator('status_sync_interval_minutes')
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("Status sync interval must be positive")
        return v


class FulfillmentSettings(BaseSettings):
    """Main application configuration combining all sub-configurations."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    cj_user_id: str = Field(default="", validation_alias=_cj_env("USER_ID"))
    cj_key: str = Field(default="", validation_alias=_cj_env("KEY"))
    cj_secret: str = Field(default="", validation_alias=_cj_env("SECRET"))
    cj_email: str = Field(default="", validation_alias=_cj_env("EMAIL"))
    cj_password: str = Field(default="", validation_alias=_cj_env("PASSWORD"))
    cj_api_url: str = Field(default=DEFAULT_CJ_API_URL, validation_alias=_cj_env("API_URL"))
    cj_api_timeout: float = Field(default=30.0, validation_alias="CJ_API_TIMEOUT")
    cj_auth_timeout: float = Field(default=15.0, validation_alias="CJ_AUTH_TIMEOUT")
    cj_default_country_code: str = Field(default="ZA", validation_alias="CJ_DEFAULT_COUNTRY_CODE")
    cj_origin_country_code: str = Field(default="CN", validation_alias="CJ_ORIGIN_COUNTRY_CODE")

    price_multiplier: float = Field(default=2.5, validation_alias="PRICE_MULTIPLIER")
    compare_at_multiplier: float = Field(default=3.0, validation_alias="COMPARE_AT_MULTIPLIER")

    store_url: str = Field(default="", validation_alias="MAIN_SITE_URL")
    order_status_email_secret: str = Field(default="", validation_alias="ORDER_STATUS_EMAIL_SECRET")
    tracking_url_base: str = Field(default=DEFAULT_TRACKING_URL_BASE, validation_alias="TRACKING_URL_BASE")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_dir: str = Field(default="./logs", validation_alias="LOG_DIR")
    debug_mode: bool = Field(default=False, validation_alias="DEBUG_MODE")
    database_url: str = Field(default="sqlite:///./cj_fulfillment.db", validation_alias="DATABASE_URL")
    status_sync_interval_minutes: int = Field(default=60, validation_alias="STATUS_SYNC_INTERVAL_MINUTES")

    @property
    def cj(self) -> CJDropshippingConfig:
        """Get CJ Dropshipping API configuration."""
        return CJDropshippingConfig(
            user_id=self.cj_user_id.strip(),
            key=self.cj_key.strip(),
            secret=self.cj_secret.strip(),
            email=self.cj_email.strip(),
            password=self.cj_password,
            api_url=self.cj_api_url,
            timeout=self.cj_api_timeout,
            auth_timeout=self.cj_auth_timeout,
            default_country_code=self.cj_default_country_code,
            origin_country_code=self.cj_origin_country_code,
        )

    @property
    def pricing(self) -> PricingConfig:
        """Get retail pricing configuration."""
        return PricingConfig(
            price_multiplier=self.price_multiplier,
            compare_at_multiplier=self.compare_at_multiplier,
        )

    @property
    def store(self) -> StorefrontConfig:
        """Get storefront configuration."""
        return StorefrontConfig(
            url=self.store_url.strip().rstrip("/"),
            status_email_secret=self.order_status_email_secret,
            tracking_url_base=self.tracking_url_base,
        )

    @property
    def app(self) -> ApplicationConfig:
        """Get application configuration."""
        return ApplicationConfig(
            log_level=self.log_level,
            log_dir=self.log_dir,
            debug_mode=self.debug_mode,
            database_url=self.database_url,
            status_sync_interval_minutes=self.status_sync_interval_minutes,
        )


# Global configuration instance
_config: Optional[FulfillmentSettings] = None


def get_config() -> FulfillmentSettings:
    """
    Get the global configuration instance.

    Returns:
        FulfillmentSettings: Validated configuration instance.

    Raises:
        ValueError: If configuration validation fails.
    """
    global _config

    if _config is None:
        try:
            _config = FulfillmentSettings()
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}")

    return _config


def reload_config() -> FulfillmentSettings:
    """
    Reload configuration from environment variables.

    Returns:
        FulfillmentSettings: New validated configuration instance.
    """
    global _config
    _config = None
    return get_config()


def validate_configuration() -> Dict[str, Any]:
    """
    Validate current configuration and return status information.

    Secrets are reported only as presence flags.

    Returns:
        Dict containing validation results and configuration summary.
    """
    try:
        config = get_config()
        cj = config.cj
        store = config.store
        app = config.app

        return {
            "valid": True,
            "timestamp": datetime.now().isoformat(),
            "summary": {
                "cj_dropshipping": {
                    "api_url": cj.api_url,
                    "timeout": cj.timeout,
                    "auth_timeout": cj.auth_timeout,
                    "has_credentials": cj.has_credentials,
                    "can_sign_requests": cj.can_sign,
                    "default_country_code": cj.default_country_code,
                },
                "pricing": config.pricing.model_dump(),
                "storefront": {
                    "url": store.url,
                    "status_emails_enabled": store.status_emails_enabled,
                },
                "application": {
                    "log_level": app.log_level,
                    "debug_mode": app.debug_mode,
                    "status_sync_interval_minutes": app.status_sync_interval_minutes,
                },
            },
        }

    except Exception as e:
        return {
            "valid": False,
            "error": str(e),
            "timestamp": datetime.now().isoformat(),
        }
