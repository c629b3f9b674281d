from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any


class ProductRecord(BaseModel):
    """Query-time projection of a catalog row."""

    id: str
    name: str
    category: str
    brand: Optional[str] = None
    price: float
    original_price: Optional[float] = None
    rating: Optional[float] = None
    image: Optional[str] = None
    images: List[str] = []
    description: Optional[str] = None
    product_url: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None


class RankedCandidate(BaseModel):
    product: ProductRecord
    similarity: float = Field(ge=-1.0, le=1.0)


class ProductToolItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    price: float
    brand: Optional[str] = None
    category: str
    image: Optional[str] = None
    rating: Optional[float] = None
    description: Optional[str] = None
    product_url: Optional[str] = Field(default=None, alias="productUrl")

    @classmethod
    def from_record(cls, record: ProductRecord) -> "ProductToolItem":
        return cls(
            id=record.id,
            name=record.name,
            price=record.price,
            brand=record.brand,
            category=record.category,
            image=record.image,
            rating=record.rating,
            description=record.description,
            product_url=record.product_url,
        )
