from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint

class ReviewVote(SQLModel, table=True):
    # One vote per user per review; repeat votes update this row in place
    __table_args__ = (UniqueConstraint("review_id", "user_id", name="uq_reviewvote_review_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    review_id: int = Field(foreign_key="review.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    is_helpful: bool  # True for helpful, False for not helpful

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
