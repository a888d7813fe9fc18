from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List
from sqlalchemy import desc, func
from sqlmodel import Session, select

from app.models.category import Category
from app.models.product import Product, ProductStatus
from app.models.review import Review, ReviewStatus
from app.models.user import User
from app.services.rating import average_of
from app.services.soft_delete import not_deleted

TOP_PRODUCTS_LIMIT = 5
TOP_RATED_MIN_REVIEWS = 2
RECENT_ACTIVITY_LIMIT = 10
TREND_MONTHS = 6


class StatsService:
    """Platform-wide figures; only approved, non-deleted rows are counted."""

    def __init__(self, session: Session):
        self.session = session

    def _visible_products(self):
        return (Product.status == ProductStatus.APPROVED, not_deleted(Product))

    def _visible_reviews(self):
        return (Review.status == ReviewStatus.APPROVED, not_deleted(Review), not_deleted(Product))

    def overview(self) -> Dict[str, int]:
        return {
            "totalProducts": self.session.exec(
                select(func.count(Product.id)).where(*self._visible_products())
            ).one(),
            "totalReviews": self.session.exec(
                select(func.count(Review.id))
                .join(Product, Product.id == Review.product_id)
                .where(*self._visible_reviews())
            ).one(),
            "totalUsers": self.session.exec(select(func.count(User.id)).where(not_deleted(User))).one(),
            "totalCategories": self.session.exec(select(func.count(Category.id))).one(),
        }

    def _product_summaries(self, statement) -> List[Dict[str, Any]]:
        rows = self.session.exec(statement).all()
        return [
            {
                "id": product.id,
                "name": product.name,
                "slug": product.slug,
                "average_rating": str(product.average_rating),
                "total_reviews": product.total_reviews,
                "category": {"name": category_name},
            }
            for product, category_name in rows
        ]

    def top_rated(self) -> List[Dict[str, Any]]:
        return self._product_summaries(
            select(Product, Category.name)
            .join(Category, Category.id == Product.category_id, isouter=True)
            .where(*self._visible_products(), Product.total_reviews >= TOP_RATED_MIN_REVIEWS)
            .order_by(desc(Product.average_rating), desc(Product.total_reviews), Product.id)
            .limit(TOP_PRODUCTS_LIMIT)
        )

    def most_reviewed(self) -> List[Dict[str, Any]]:
        return self._product_summaries(
            select(Product, Category.name)
            .join(Category, Category.id == Product.category_id, isouter=True)
            .where(*self._visible_products())
            .order_by(desc(Product.total_reviews), desc(Product.average_rating), Product.id)
            .limit(TOP_PRODUCTS_LIMIT)
        )

    def category_stats(self) -> List[Dict[str, Any]]:
        # Averages are weighted by review count so a category mean matches its reviews
        rows = self.session.exec(
            select(
                Category.id,
                Category.name,
                Category.slug,
                func.count(Product.id),
                func.coalesce(func.sum(Product.total_reviews), 0),
                func.coalesce(func.sum(Product.average_rating * Product.total_reviews), 0),
            )
            .select_from(Product)
            .join(Category, Category.id == Product.category_id)
            .where(*self._visible_products())
            .group_by(Category.id, Category.name, Category.slug)
            .order_by(desc(func.count(Product.id)), Category.name)
        ).all()
        stats = []
        for category_id, name, slug, product_count, total_reviews, weighted in rows:
            total_reviews = int(total_reviews)
            stats.append({
                "category_id": category_id,
                "category_name": name,
                "category_slug": slug,
                "product_count": product_count,
                "total_reviews": total_reviews,
                "average_rating": str(average_of(weighted, total_reviews)),
            })
        return stats

    def recent_activity(self) -> List[Dict[str, Any]]:
        rows = self.session.exec(
            select(Review, Product.name, Product.slug, User.name)
            .join(Product, Product.id == Review.product_id)
            .join(User, User.id == Review.user_id, isouter=True)
            .where(*self._visible_reviews())
            .order_by(desc(Review.created_at), desc(Review.id))
            .limit(RECENT_ACTIVITY_LIMIT)
        ).all()
        return [
            {
                "review_id": review.id,
                "review_title": review.title,
                "review_rating": review.rating,
                "review_created_at": review.created_at,
                "product_name": product_name,
                "product_slug": product_slug,
                "user_name": user_name,
            }
            for review, product_name, product_slug, user_name in rows
        ]

    def rating_distribution(self) -> Dict[int, int]:
        rows = self.session.exec(
            select(Review.rating, func.count(Review.id))
            .join(Product, Product.id == Review.product_id)
            .where(*self._visible_reviews())
            .group_by(Review.rating)
        ).all()
        distribution = {star: 0 for star in range(1, 6)}
        distribution.update({rating: count for rating, count in rows})
        return distribution

    def monthly_trends(self, now: datetime = None) -> List[Dict[str, Any]]:
        now = now or datetime.utcnow()
        since = now - timedelta(days=31 * TREND_MONTHS)
        created = self.session.exec(
            select(Review.created_at)
            .join(Product, Product.id == Review.product_id)
            .where(*self._visible_reviews(), Review.created_at >= since)
        ).all()
        counts = Counter(moment.strftime("%Y-%m") for moment in created)
        return [{"month": month, "review_count": counts[month]} for month in sorted(counts)]

    def platform_stats(self) -> Dict[str, Any]:
        return {
            "overview": self.overview(),
            "topRatedProducts": self.top_rated(),
            "mostReviewedProducts": self.most_reviewed(),
            "categoryStats": self.category_stats(),
            "recentActivity": self.recent_activity(),
            "ratingDistribution": self.rating_distribution(),
            "monthlyTrends": self.monthly_trends(),
        }
