from typing import Optional, List, Any
from decimal import Decimal
from enum import Enum
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON, Enum as SAEnum
from datetime import datetime

class ProductStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class PricingType(str, Enum):
    FREE = "Free"
    FREEMIUM = "Freemium"
    PAID = "Paid"
    SUBSCRIPTION = "Subscription"
    ONE_TIME = "One-time Purchase"

# Written only by the rating aggregator, never from request data
AGGREGATE_FIELDS = frozenset({"average_rating", "total_reviews"})

class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Basic Info
    name: str = Field(index=True, max_length=200)
    slug: str = Field(index=True, unique=True, max_length=200)
    description: str
    short_description: Optional[str] = None
    website: Optional[str] = None

    # Pricing
    pricing: Optional[str] = None  # Free, Freemium, Paid, etc.
    pricing_details: Optional[Any] = Field(default=None, sa_column=Column(JSON))

    # Details
    features: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    specifications: Optional[Any] = Field(default=None, sa_column=Column(JSON))

    # References
    category_id: int = Field(foreign_key="category.id", index=True)
    submitted_by: int = Field(foreign_key="user.id", index=True)

    # Moderation
    status: ProductStatus = Field(
        default=ProductStatus.PENDING,
        sa_column=Column(
            SAEnum(ProductStatus, values_callable=lambda x: [e.value for e in x]),
            nullable=False,
            index=True,
        )
    )
    is_featured: bool = Field(default=False)

    # Aggregates
    average_rating: Decimal = Field(default=Decimal("0.00"), max_digits=3, decimal_places=2)
    total_reviews: int = Field(default=0)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = None

class ProductImage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    url: str
    alt: Optional[str] = Field(default=None, max_length=255)
    is_primary: bool = Field(default=False)
    order: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
