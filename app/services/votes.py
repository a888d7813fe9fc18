from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.core.logging import get_logger
from app.db.session import atomic
from app.models.product import Product
from app.models.review import Review, ReviewStatus
from app.models.review_vote import ReviewVote
from app.models.user import User
from app.services.moderation import require_actor
from app.services.soft_delete import get_active

logger = get_logger(__name__)


class VoteService:
    def __init__(self, session: Session):
        self.session = session

    def _votable_review(self, review_id: int) -> Review:
        # Locking the review row serializes concurrent votes on the same review
        review = get_active(self.session, Review, review_id, label="Review", for_update=True)
        if review.status != ReviewStatus.APPROVED:
            raise NotFound("Review not found")
        get_active(self.session, Product, review.product_id, label="Product")
        return review

    def get_vote(self, review_id: int, user: User) -> Optional[ReviewVote]:
        return self.session.exec(
            select(ReviewVote).where(
                ReviewVote.review_id == review_id,
                ReviewVote.user_id == user.id,
            )
        ).first()

    def recompute_helpful_count(self, review_id: int) -> int:
        """Recount helpful votes from source rows; flushes, never commits."""
        self.session.flush()
        helpful_count = self.session.exec(
            select(func.count(ReviewVote.id)).where(
                ReviewVote.review_id == review_id,
                ReviewVote.is_helpful == True,  # noqa: E712
            )
        ).one()
        review = self.session.get(Review, review_id)
        if review.helpful_count != helpful_count:
            review.helpful_count = helpful_count
            self.session.add(review)
            self.session.flush()
        return helpful_count

    def cast_vote(self, review_id: int, user: Optional[User], is_helpful: bool) -> Tuple[ReviewVote, int]:
        user = require_actor(user)
        if not isinstance(is_helpful, bool):
            raise ValidationFailed("isHelpful must be a boolean")

        try:
            with atomic(self.session):
                self._votable_review(review_id)
                vote = self.get_vote(review_id, user)
                if vote is None:
                    vote = ReviewVote(review_id=review_id, user_id=user.id, is_helpful=is_helpful)
                    self.session.add(vote)
                    logger.info("review_vote_created", review_id=review_id, user_id=user.id, is_helpful=is_helpful)
                elif vote.is_helpful != is_helpful:
                    vote.is_helpful = is_helpful
                    vote.updated_at = datetime.utcnow()
                    self.session.add(vote)
                    logger.info("review_vote_changed", review_id=review_id, user_id=user.id, is_helpful=is_helpful)
                helpful_count = self.recompute_helpful_count(review_id)
        except IntegrityError:
            # A concurrent first vote by the same user won the insert
            raise Conflict("Vote already recorded, please retry")

        self.session.refresh(vote)
        return vote, helpful_count
