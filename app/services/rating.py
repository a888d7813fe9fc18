from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Tuple
from sqlalchemy import func
from sqlmodel import Session, select

from app.core.logging import get_logger
from app.models.product import Product
from app.models.review import Review, ReviewStatus
from app.services.soft_delete import get_active, not_deleted

logger = get_logger(__name__)

TWO_PLACES = Decimal("0.01")


def average_of(total: int, count: int) -> Decimal:
    """Mean rating rounded half-up to two places; 0.00 when there is nothing to average."""
    if not count:
        return Decimal("0.00")
    return (Decimal(str(total)) / Decimal(count)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class RatingAggregator:
    """Keeps ``Product.average_rating``/``total_reviews`` equal to the live review set.

    Only approved, non-deleted reviews count. Methods flush but never commit:
    callers run them inside the same ``atomic`` block as the write that
    changed the review set.
    """

    def __init__(self, session: Session):
        self.session = session

    def _counted_reviews(self, product_id: int):
        return (
            Review.product_id == product_id,
            Review.status == ReviewStatus.APPROVED,
            not_deleted(Review),
        )

    def compute(self, product_id: int) -> Tuple[Decimal, int]:
        self.session.flush()
        count, total = self.session.exec(
            select(func.count(Review.id), func.coalesce(func.sum(Review.rating), 0))
            .where(*self._counted_reviews(product_id))
        ).one()
        return average_of(total, count), count

    def recompute_product_rating(self, product_id: int) -> Product:
        # The product row itself may be tombstoned; its aggregates are still kept exact
        product = get_active(self.session, Product, product_id, include_deleted=True, for_update=True)
        average, count = self.compute(product_id)

        if product.average_rating != average or product.total_reviews != count:
            product.average_rating = average
            product.total_reviews = count
            product.updated_at = datetime.utcnow()
            self.session.add(product)
            self.session.flush()

        logger.debug("product_rating_recomputed", product_id=product_id,
                     average_rating=str(average), total_reviews=count)
        return product

    def rating_distribution(self, product_id: int) -> Dict[int, int]:
        rows = self.session.exec(
            select(Review.rating, func.count(Review.id))
            .where(*self._counted_reviews(product_id))
            .group_by(Review.rating)
        ).all()
        distribution = {star: 0 for star in range(1, 6)}
        for rating, count in rows:
            distribution[rating] = count
        return distribution
