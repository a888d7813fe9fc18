from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel

class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(max_length=100)
    slug: str = Field(unique=True, index=True, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = Field(default=None, max_length=50)  # Icon name for UI

    # Optional parent for nested categories
    parent_id: Optional[int] = Field(default=None, foreign_key="category.id")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
