from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint

class Tag(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(unique=True, max_length=50)
    slug: str = Field(unique=True, index=True, max_length=50)
    color: str = Field(default="#6B7280", max_length=7)  # Hex color

    created_at: datetime = Field(default_factory=datetime.utcnow)

class ProductTag(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("product_id", "tag_id", name="uq_producttag_product_tag"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    tag_id: int = Field(foreign_key="tag.id", index=True)
