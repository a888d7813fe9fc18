"""Moderation state machine for products and reviews.

Products start ``pending`` and only an admin moves them to ``approved`` or
``rejected``. An owner editing content sends the product back to ``pending``
from any state. Reviews start in ``settings.REVIEW_DEFAULT_STATUS`` and an
owner edit resets them to that same status; admins may still approve or
reject them afterwards.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from app.core.config import settings
from app.core.errors import Conflict, PermissionDenied, Unauthenticated
from app.core.logging import get_logger
from app.models.product import Product, ProductStatus
from app.models.review import Review, ReviewStatus
from app.models.user import User

logger = get_logger(__name__)

PRODUCT_TRANSITIONS: Dict[ProductStatus, FrozenSet[ProductStatus]] = {
    ProductStatus.PENDING: frozenset({ProductStatus.APPROVED, ProductStatus.REJECTED}),
    ProductStatus.APPROVED: frozenset(),
    ProductStatus.REJECTED: frozenset(),
}

REVIEW_TRANSITIONS: Dict[ReviewStatus, FrozenSet[ReviewStatus]] = {
    ReviewStatus.PENDING: frozenset({ReviewStatus.APPROVED, ReviewStatus.REJECTED}),
    ReviewStatus.APPROVED: frozenset({ReviewStatus.REJECTED}),
    ReviewStatus.REJECTED: frozenset({ReviewStatus.APPROVED}),
}


def require_actor(actor: Optional[User]) -> User:
    if actor is None:
        raise Unauthenticated()
    return actor


def require_admin(actor: Optional[User]) -> User:
    actor = require_actor(actor)
    if not actor.is_admin:
        raise PermissionDenied("Admin access required")
    return actor


def require_owner(actor: Optional[User], owner_id: int) -> User:
    actor = require_actor(actor)
    if actor.id != owner_id:
        raise PermissionDenied()
    return actor


def require_owner_or_admin(actor: Optional[User], owner_id: int) -> User:
    actor = require_actor(actor)
    if actor.id != owner_id and not actor.is_admin:
        raise PermissionDenied()
    return actor


def can_view(actor: Optional[User], owner_id: int) -> bool:
    """Whether an actor may see an entity regardless of its moderation status."""
    return actor is not None and (actor.id == owner_id or actor.is_admin)


def review_default_status() -> ReviewStatus:
    return ReviewStatus(settings.REVIEW_DEFAULT_STATUS)


def _transition(entity: Union[Product, Review], target: Enum, table: Dict) -> Union[Product, Review]:
    current = type(target)(entity.status)
    if target not in table[current]:
        raise Conflict(f"{type(entity).__name__} is already {current.value}"
                       if current == target
                       else f"Cannot move {type(entity).__name__.lower()} from {current.value} to {target.value}")
    entity.status = target
    entity.updated_at = datetime.utcnow()
    logger.info(
        "status_transition",
        entity=type(entity).__name__.lower(),
        entity_id=entity.id,
        from_status=current.value,
        to_status=target.value,
    )
    return entity


def approve_product(product: Product, actor: Optional[User]) -> Product:
    require_admin(actor)
    return _transition(product, ProductStatus.APPROVED, PRODUCT_TRANSITIONS)


def reject_product(product: Product, actor: Optional[User], reason: Optional[str] = None) -> Product:
    require_admin(actor)
    _transition(product, ProductStatus.REJECTED, PRODUCT_TRANSITIONS)
    if reason:
        logger.info("product_rejection_reason", product_id=product.id, reason=reason)
    return product


def reset_product_for_review(product: Product) -> Product:
    """Owner edits always require re-approval."""
    previous = ProductStatus(product.status)
    product.status = ProductStatus.PENDING
    product.updated_at = datetime.utcnow()
    if previous != ProductStatus.PENDING:
        logger.info("status_transition", entity="product", entity_id=product.id,
                    from_status=previous.value, to_status=ProductStatus.PENDING.value)
    return product


def approve_review(review: Review, actor: Optional[User]) -> Review:
    require_admin(actor)
    return _transition(review, ReviewStatus.APPROVED, REVIEW_TRANSITIONS)


def reject_review(review: Review, actor: Optional[User], reason: Optional[str] = None) -> Review:
    require_admin(actor)
    _transition(review, ReviewStatus.REJECTED, REVIEW_TRANSITIONS)
    if reason:
        logger.info("review_rejection_reason", review_id=review.id, reason=reason)
    return review


def reset_review_after_edit(review: Review) -> Review:
    previous = ReviewStatus(review.status)
    review.status = review_default_status()
    review.updated_at = datetime.utcnow()
    if previous != review.status:
        logger.info("status_transition", entity="review", entity_id=review.id,
                    from_status=previous.value, to_status=review.status.value)
    return review
