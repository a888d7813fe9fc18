"""Listing queries: filter, search, sort and paginate in one place.

Every listing goes through :class:`QueryBuilder` so that status defaults,
soft-delete exclusion, search and pagination are applied together and the
page and its total are counted under exactly the same predicates.
"""
import math
from dataclasses import dataclass, field, fields, replace as dc_replace
from typing import Any, Dict, List, Optional
from sqlalchemy import asc, desc, func
from sqlmodel import Session, select

from app.core.config import settings
from app.core.errors import ValidationFailed
from app.models.product import Product, ProductStatus
from app.models.review import Review, ReviewStatus
from app.services.soft_delete import exclude_deleted, not_deleted

PRODUCT_SORT_COLUMNS = {
    "created_at": Product.created_at,
    "createdAt": Product.created_at,
    "name": Product.name,
    "rating": Product.average_rating,
    "reviews": Product.total_reviews,
    "total_reviews": Product.total_reviews,
    "totalReviews": Product.total_reviews,
}

REVIEW_SORT_COLUMNS = {
    "created_at": Review.created_at,
    "createdAt": Review.created_at,
    "rating": Review.rating,
    "helpful": Review.helpful_count,
    "helpful_count": Review.helpful_count,
    "helpfulCount": Review.helpful_count,
}

ORDER_DIRECTIONS = {"asc": asc, "desc": desc}


@dataclass
class Page:
    items: List[Any]
    page: int
    limit: int
    total: int
    counts: Optional[Dict[str, int]] = None

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }

    def render(self, key: str, items: Optional[List[Any]] = None) -> Dict[str, Any]:
        body = {
            key: items if items is not None else [item.model_dump(mode="json") for item in self.items],
            "pagination": self.pagination(),
        }
        if self.counts is not None:
            body["counts"] = self.counts
        return body


@dataclass
class ListQuery:
    page: int = 1
    limit: int = field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE)
    sort: str = "created_at"
    order: str = "desc"
    include_deleted: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def replace(self, **changes) -> "ListQuery":
        """Copy with changes applied; changing anything but ``page`` goes back to page 1."""
        names = {f.name for f in fields(self)}
        unknown = set(changes) - names
        if unknown:
            raise ValidationFailed(f"Unknown filter: {', '.join(sorted(unknown))}")
        if any(key != "page" and getattr(self, key) != value for key, value in changes.items()):
            changes.setdefault("page", 1)
        return dc_replace(self, **changes)

    def validate(self, sort_columns: Dict[str, Any]) -> None:
        if self.page < 1:
            raise ValidationFailed("page must be 1 or greater")
        if self.limit < 1 or self.limit > settings.MAX_PAGE_SIZE:
            raise ValidationFailed(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")
        if self.sort not in sort_columns:
            raise ValidationFailed(f"Unsupported sort key: {self.sort}")
        if self.order not in ORDER_DIRECTIONS:
            raise ValidationFailed("order must be 'asc' or 'desc'")


@dataclass
class ProductQuery(ListQuery):
    # None means every status (admin listings)
    status: Optional[ProductStatus] = ProductStatus.APPROVED
    search: Optional[str] = None
    category_id: Optional[int] = None
    pricing: Optional[str] = None
    featured: bool = False
    submitted_by: Optional[int] = None


@dataclass
class ReviewQuery(ListQuery):
    limit: int = field(default_factory=lambda: settings.REVIEW_PAGE_SIZE)
    status: Optional[ReviewStatus] = ReviewStatus.APPROVED
    product_id: Optional[int] = None
    user_id: Optional[int] = None


def _status_counts(rows, statuses) -> Dict[str, int]:
    counts = {status.value: 0 for status in statuses}
    for status, count in rows:
        counts[getattr(status, "value", status)] = count
    return {"all": sum(counts.values()), **counts}


class QueryBuilder:
    def __init__(self, session: Session):
        self.session = session

    def _paginate(self, statement, count_statement, query: ListQuery, sort_column, id_column) -> Page:
        direction = ORDER_DIRECTIONS[query.order]
        total = self.session.exec(count_statement).one()
        items = self.session.exec(
            statement.order_by(direction(sort_column), direction(id_column))
            .offset(query.offset)
            .limit(query.limit)
        ).all()
        return Page(items=list(items), page=query.page, limit=query.limit, total=total)

    # Products

    def product_conditions(self, query: ProductQuery, with_status: bool = True) -> list:
        conditions = []
        if not query.include_deleted:
            conditions.append(not_deleted(Product))
        if with_status and query.status is not None:
            conditions.append(Product.status == query.status)
        if query.search:
            conditions.append(
                Product.name.icontains(query.search, autoescape=True)
                | Product.description.icontains(query.search, autoescape=True)
            )
        if query.category_id is not None:
            conditions.append(Product.category_id == query.category_id)
        if query.pricing:
            conditions.append(Product.pricing.icontains(query.pricing, autoescape=True))
        if query.featured:
            conditions.append(Product.is_featured == True)  # noqa: E712
        if query.submitted_by is not None:
            conditions.append(Product.submitted_by == query.submitted_by)
        return conditions

    def list_products(self, query: ProductQuery, with_counts: bool = False) -> Page:
        query.validate(PRODUCT_SORT_COLUMNS)
        conditions = self.product_conditions(query)
        page = self._paginate(
            select(Product).where(*conditions),
            select(func.count(Product.id)).where(*conditions),
            query,
            PRODUCT_SORT_COLUMNS[query.sort],
            Product.id,
        )
        if with_counts:
            page.counts = self.product_status_counts(query)
        return page

    def product_status_counts(self, query: ProductQuery) -> Dict[str, int]:
        """Per-status totals under every filter except status itself."""
        rows = self.session.exec(
            select(Product.status, func.count(Product.id))
            .where(*self.product_conditions(query, with_status=False))
            .group_by(Product.status)
        ).all()
        return _status_counts(rows, ProductStatus)

    # Reviews

    def review_conditions(self, query: ReviewQuery, with_status: bool = True) -> list:
        conditions = []
        if not query.include_deleted:
            conditions.append(not_deleted(Review))
            conditions.append(not_deleted(Product))
        if with_status and query.status is not None:
            conditions.append(Review.status == query.status)
        if query.product_id is not None:
            conditions.append(Review.product_id == query.product_id)
        if query.user_id is not None:
            conditions.append(Review.user_id == query.user_id)
        return conditions

    def list_reviews(self, query: ReviewQuery, with_counts: bool = False) -> Page:
        query.validate(REVIEW_SORT_COLUMNS)
        conditions = self.review_conditions(query)
        page = self._paginate(
            select(Review).join(Product, Product.id == Review.product_id).where(*conditions),
            select(func.count(Review.id)).join(Product, Product.id == Review.product_id).where(*conditions),
            query,
            REVIEW_SORT_COLUMNS[query.sort],
            Review.id,
        )
        if with_counts:
            page.counts = self.review_status_counts(query)
        return page

    def review_status_counts(self, query: ReviewQuery) -> Dict[str, int]:
        rows = self.session.exec(
            select(Review.status, func.count(Review.id))
            .join(Product, Product.id == Review.product_id)
            .where(*self.review_conditions(query, with_status=False))
            .group_by(Review.status)
        ).all()
        return _status_counts(rows, ReviewStatus)

    def recent_reviews(self, product_id: int, limit: Optional[int] = None) -> List[Review]:
        statement = exclude_deleted(
            select(Review).where(Review.product_id == product_id, Review.status == ReviewStatus.APPROVED),
            Review,
        )
        return list(self.session.exec(
            statement.order_by(desc(Review.created_at), desc(Review.id)).limit(limit or settings.RECENT_REVIEWS_LIMIT)
        ).all())
