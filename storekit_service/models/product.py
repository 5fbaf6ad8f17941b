"""Product catalog models.

Products are owned by the platform catalog and are read-only here.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class Product(BaseModel):
    """Catalog entry returned by the platform for a product identifier."""

    product_identifier: str = Field(..., description="Unique product identifier")
    localized_title: str = Field(default="", description="Localized product title")
    localized_description: str = Field(default="", description="Localized product description")
    price: Decimal = Field(default=Decimal("0"), description="Price in the storefront currency")
    price_locale: str = Field(default="en_US", description="Locale used to format the price")

    # Subscription metadata (only set for subscription products)
    subscription_period: Optional[str] = Field(None, description="ISO 8601 duration (e.g., P1M, P1Y)")
    subscription_group_identifier: Optional[str] = Field(None, description="Subscription group")

    @property
    def is_subscription(self) -> bool:
        """Check if the product is a subscription."""
        return self.subscription_period is not None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "product_identifier": "com.example.app.premium.monthly",
                "localized_title": "Premium Monthly",
                "localized_description": "All premium features, billed monthly",
                "price": "4.99",
                "price_locale": "en_US",
                "subscription_period": "P1M",
                "subscription_group_identifier": "premium",
            }
        }
