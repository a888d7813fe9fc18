from typing import List, Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON, Enum as SAEnum

class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class Review(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # References
    product_id: int = Field(foreign_key="product.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    # Review Content
    rating: int  # 1-5 stars, checked by the review service
    title: Optional[str] = Field(default=None, max_length=200)
    content: str
    pros: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    cons: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))

    # Derived from ReviewVote rows by the vote tally
    helpful_count: int = Field(default=0)
    is_verified_purchase: bool = Field(default=False)

    # Moderation
    status: ReviewStatus = Field(
        default=ReviewStatus.APPROVED,
        sa_column=Column(
            SAEnum(ReviewStatus, values_callable=lambda x: [e.value for e in x]),
            nullable=False,
            index=True,
        )
    )

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = None
