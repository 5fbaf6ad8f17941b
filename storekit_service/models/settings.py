"""Settings models from storekit.yaml configuration."""

from typing import Optional

from pydantic import BaseModel, Field


class VerifyReceiptConfig(BaseModel):
    """Remote receipt verification settings."""

    production_url: str = Field(
        default="https://buy.itunes.apple.com/verifyReceipt",
        description="Production verifyReceipt endpoint",
    )
    sandbox_url: str = Field(
        default="https://sandbox.itunes.apple.com/verifyReceipt",
        description="Sandbox verifyReceipt endpoint",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout per request")
    exclude_old_transactions: bool = Field(
        default=False,
        description="Only return the latest renewal of auto-renewable subscriptions",
    )


class ReceiptConfig(BaseModel):
    """Local receipt cache settings."""

    path: str = Field(default="receipt/sandboxReceipt", description="Path of the cached receipt file")


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    format: str = Field(default="json", description="'json' or 'console'")


class StoreKitSettings(BaseModel):
    """Complete storekit.yaml configuration."""

    verify_receipt: VerifyReceiptConfig = Field(default_factory=VerifyReceiptConfig)
    receipt: ReceiptConfig = Field(default_factory=ReceiptConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    shared_secret: Optional[str] = Field(None, description="App-specific shared secret")

    class Config:
        json_schema_extra = {
            "example": {
                "verify_receipt": {
                    "production_url": "https://buy.itunes.apple.com/verifyReceipt",
                    "sandbox_url": "https://sandbox.itunes.apple.com/verifyReceipt",
                    "timeout_seconds": 30.0,
                },
                "receipt": {"path": "receipt/sandboxReceipt"},
                "logging": {"level": "INFO", "format": "json"},
            }
        }
