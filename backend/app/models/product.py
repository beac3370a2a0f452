"""Product catalog models."""

from typing import Optional

from pydantic import BaseModel, Field


class ProductInDB(BaseModel):
    """Catalog entry as stored in database."""

    productId: str = Field(..., description="Unique product identifier")
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    price: float = Field(..., ge=0, description="Current price in major currency units")
    originalPrice: Optional[float] = Field(None, ge=0, description="Price before discount")
    category: str = Field(default="")
    stock: int = Field(default=0, ge=0, description="Units available for sale")
    image: str = Field(default="")
    features: list[str] = Field(default_factory=list)
    isActive: bool = True

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "productId": "organic-honey",
                "name": "Organic Honey",
                "description": "Pure, raw organic honey sourced from local beekeepers.",
                "price": 450,
                "originalPrice": 500,
                "category": "Food & Beverages",
                "stock": 25,
                "image": "https://images.unsplash.com/photo-1587049352846-4a222e784d38?w=400",
                "features": ["100% Pure", "Raw & Unprocessed"],
                "isActive": True,
            }
        }
