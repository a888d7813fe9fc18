from typing import Any, Dict, List, Optional
from sqlmodel import Session, select

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.core.logging import get_logger
from app.db.session import atomic
from app.models.product import Product, ProductStatus
from app.models.review import Review, ReviewStatus
from app.models.user import User
from app.services import moderation
from app.services.query import Page, QueryBuilder, ReviewQuery
from app.services.rating import RatingAggregator
from app.services.soft_delete import exclude_deleted, get_active, mark_deleted, mark_restored

logger = get_logger(__name__)

EDITABLE_FIELDS = frozenset({"rating", "title", "content", "pros", "cons"})
PROTECTED_FIELDS = frozenset({"helpful_count", "status", "product_id", "user_id", "deleted_at"})


def validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationFailed("Rating must be between 1 and 5")
    return rating


def _validate_points(name: str, value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationFailed(f"{name} must be a list of strings")
    points = [item.strip() for item in value if item.strip()]
    return points or None


class ReviewService:
    """Review lifecycle; every change to the counted review set recomputes the product rating."""

    def __init__(self, session: Session):
        self.session = session
        self.queries = QueryBuilder(session)
        self.ratings = RatingAggregator(session)

    def _live_review(self, user_id: int, product_id: int, exclude_id: Optional[int] = None) -> Optional[Review]:
        statement = exclude_deleted(
            select(Review).where(Review.product_id == product_id, Review.user_id == user_id),
            Review,
        )
        if exclude_id is not None:
            statement = statement.where(Review.id != exclude_id)
        return self.session.exec(statement).first()

    def _load(self, review_id: int) -> Review:
        review = get_active(self.session, Review, review_id, label="Review")
        # Reviews of a tombstoned product are unreachable
        get_active(self.session, Product, review.product_id, label="Product")
        return review

    # Reads

    def get(self, review_id: int, actor: Optional[User] = None) -> Review:
        review = self._load(review_id)
        if review.status != ReviewStatus.APPROVED and not moderation.can_view(actor, review.user_id):
            raise NotFound("Review not found")
        return review

    def list_reviews(self, query: ReviewQuery, actor: Optional[User] = None) -> Page:
        if query.status != ReviewStatus.APPROVED or query.include_deleted:
            moderation.require_admin(actor)
        if query.product_id is not None:
            product = get_active(self.session, Product, query.product_id, label="Product")
            # Same visibility as the product detail page
            if product.status != ProductStatus.APPROVED and not moderation.can_view(actor, product.submitted_by):
                raise NotFound("Product not found")
        return self.queries.list_reviews(query)

    def list_admin_reviews(self, query: ReviewQuery, actor: Optional[User]) -> Page:
        moderation.require_admin(actor)
        return self.queries.list_reviews(query, with_counts=True)

    def with_authors(self, reviews: List[Review]) -> List[Dict[str, Any]]:
        user_ids = {review.user_id for review in reviews}
        users = {}
        if user_ids:
            users = {user.id: user for user in self.session.exec(select(User).where(User.id.in_(user_ids))).all()}
        payload = []
        for review in reviews:
            author = users.get(review.user_id)
            payload.append({
                **review.model_dump(mode="json"),
                "user": {"id": author.id, "name": author.name, "avatar": author.avatar} if author else None,
            })
        return payload

    # Writes

    def create(self, data: Dict[str, Any], actor: Optional[User]) -> Review:
        actor = moderation.require_actor(actor)
        product_id = data.get("product_id")
        content = (data.get("content") or "").strip()
        if not product_id or data.get("rating") is None or not content:
            raise ValidationFailed("Product ID, rating, and content are required")
        rating = validate_rating(data["rating"])
        pros = _validate_points("pros", data.get("pros"))
        cons = _validate_points("cons", data.get("cons"))

        with atomic(self.session):
            # Locking the product serializes concurrent reviews of it
            get_active(self.session, Product, product_id, label="Product", for_update=True)
            if self._live_review(actor.id, product_id) is not None:
                raise Conflict("You have already reviewed this product")

            review = Review(
                product_id=product_id,
                user_id=actor.id,
                rating=rating,
                title=data.get("title"),
                content=content,
                pros=pros,
                cons=cons,
                status=moderation.review_default_status(),
            )
            self.session.add(review)
            self.session.flush()
            self.ratings.recompute_product_rating(product_id)

        self.session.refresh(review)
        logger.info("review_created", review_id=review.id, product_id=product_id, user_id=actor.id, rating=rating)
        return review

    def update(self, review_id: int, changes: Dict[str, Any], actor: Optional[User]) -> Review:
        actor = moderation.require_actor(actor)
        review = self._load(review_id)
        moderation.require_owner(actor, review.user_id)

        protected = sorted(set(changes) & PROTECTED_FIELDS)
        if protected:
            raise ValidationFailed(f"{', '.join(protected)} cannot be set directly")
        accepted = {field: value for field, value in changes.items() if field in EDITABLE_FIELDS}
        if "rating" in accepted:
            accepted["rating"] = validate_rating(accepted["rating"])
        if "content" in accepted:
            accepted["content"] = (accepted["content"] or "").strip()
            if not accepted["content"]:
                raise ValidationFailed("content cannot be empty")
        for name in ("pros", "cons"):
            if name in accepted:
                accepted[name] = _validate_points(name, accepted[name])
        if not accepted:
            return review

        with atomic(self.session):
            for field, value in accepted.items():
                setattr(review, field, value)
            moderation.reset_review_after_edit(review)
            self.session.add(review)
            self.session.flush()
            self.ratings.recompute_product_rating(review.product_id)

        self.session.refresh(review)
        logger.info("review_updated", review_id=review.id, user_id=actor.id, fields=sorted(accepted))
        return review

    def delete(self, review_id: int, actor: Optional[User]) -> Review:
        actor = moderation.require_actor(actor)
        review = self._load(review_id)
        moderation.require_owner(actor, review.user_id)

        with atomic(self.session):
            mark_deleted(review)
            self.session.add(review)
            self.session.flush()
            self.ratings.recompute_product_rating(review.product_id)

        logger.info("review_deleted", review_id=review.id, user_id=actor.id)
        return review

    def restore(self, review_id: int, actor: Optional[User]) -> Review:
        actor = moderation.require_admin(actor)
        review = get_active(self.session, Review, review_id, label="Review", include_deleted=True)
        if review.deleted_at is None:
            raise Conflict("Review is not deleted")
        get_active(self.session, Product, review.product_id, label="Product")

        with atomic(self.session):
            if self._live_review(review.user_id, review.product_id, exclude_id=review.id) is not None:
                raise Conflict("The author has another review of this product")
            mark_restored(review)
            self.session.add(review)
            self.session.flush()
            self.ratings.recompute_product_rating(review.product_id)

        self.session.refresh(review)
        logger.info("review_restored", review_id=review.id, user_id=actor.id)
        return review

    # Moderation

    def _moderate(self, review_id: int, transition, actor: Optional[User], *args) -> Review:
        moderation.require_admin(actor)
        with atomic(self.session):
            review = self._load(review_id)
            transition(review, actor, *args)
            self.session.add(review)
            self.session.flush()
            self.ratings.recompute_product_rating(review.product_id)
        self.session.refresh(review)
        return review

    def approve(self, review_id: int, actor: Optional[User]) -> Review:
        return self._moderate(review_id, moderation.approve_review, actor)

    def reject(self, review_id: int, actor: Optional[User], reason: Optional[str] = None) -> Review:
        return self._moderate(review_id, moderation.reject_review, actor, reason)
