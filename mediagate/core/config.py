import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Chapa payment gateway
    CHAPA_SECRET_KEY: Optional[str] = None
    CHAPA_BASE_URL: str = "https://api.chapa.co/v1"
    CHAPA_SUBACCOUNT_ID: Optional[str] = None
    CHAPA_TIMEOUT_SECONDS: float = 15.0

    # App URLs
    API_DOMAIN: str = "http://localhost:8000"
    PURCHASE_SUCCESS_URL: str = "app://mediagate/purchase-success"
    PURCHASE_FAILED_URL: str = "app://mediagate/purchase-failed"

    # Checkout accounting (percentages, e.g. 15 -> 0.15)
    VAT_PERCENTAGE: float = 15.0
    CHAPA_FEE_PERCENTAGE: float = 3.5

    # Revenue split
    PRIMARY_STAKEHOLDER_ID: str = "content_owner"
    PRIMARY_STAKEHOLDER_SHARE: float = 0.7
    PARTNER_STAKEHOLDER_ID: str = "distributor"
    PARTNER_STAKEHOLDER_SHARE: float = 0.3
    SETTLEMENT_DISCREPANCY_TOLERANCE: float = 0.01

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def vat_rate(self) -> float:
        return self.VAT_PERCENTAGE / 100

    @property
    def fee_rate(self) -> float:
        return self.CHAPA_FEE_PERCENTAGE / 100

    @property
    def stakeholder_shares(self) -> dict:
        return {
            self.PRIMARY_STAKEHOLDER_ID: self.PRIMARY_STAKEHOLDER_SHARE,
            self.PARTNER_STAKEHOLDER_ID: self.PARTNER_STAKEHOLDER_SHARE,
        }

settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("mediagate")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "CHAPA_SECRET_KEY",
        "CHAPA_SUBACCOUNT_ID",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
