from typing import Any, Dict, Iterable, List
from sqlalchemy import func
from sqlmodel import Session, select

from app.core.errors import ValidationFailed
from app.models.category import Category
from app.models.product import Product, ProductStatus
from app.models.tag import ProductTag, Tag
from app.services.soft_delete import not_deleted


class CatalogService:
    def __init__(self, session: Session):
        self.session = session

    def list_categories(self) -> List[Dict[str, Any]]:
        """Categories by name, each with its count of visible products."""
        product_count = (
            select(func.count(Product.id))
            .where(
                Product.category_id == Category.id,
                Product.status == ProductStatus.APPROVED,
                not_deleted(Product),
            )
            .scalar_subquery()
        )
        rows = self.session.exec(select(Category, product_count).order_by(Category.name)).all()
        return [{**category.model_dump(), "product_count": count} for category, count in rows]

    def list_tags(self) -> List[Dict[str, Any]]:
        usage_count = (
            select(func.count(ProductTag.id))
            .join(Product, Product.id == ProductTag.product_id)
            .where(
                ProductTag.tag_id == Tag.id,
                Product.status == ProductStatus.APPROVED,
                not_deleted(Product),
            )
            .scalar_subquery()
        )
        rows = self.session.exec(select(Tag, usage_count).order_by(Tag.name)).all()
        return [{**tag.model_dump(), "usage_count": count} for tag, count in rows]

    def require_category(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise ValidationFailed("Invalid category")
        return category

    def require_tags(self, tag_ids: Iterable[int]) -> List[Tag]:
        wanted = list(dict.fromkeys(tag_ids))
        if not wanted:
            return []
        found = self.session.exec(select(Tag).where(Tag.id.in_(wanted))).all()
        missing = set(wanted) - {tag.id for tag in found}
        if missing:
            raise ValidationFailed(f"Unknown tag ids: {', '.join(str(t) for t in sorted(missing))}")
        return sorted(found, key=lambda tag: wanted.index(tag.id))

    def tags_for_product(self, product_id: int) -> List[Tag]:
        return list(self.session.exec(
            select(Tag)
            .join(ProductTag, ProductTag.tag_id == Tag.id)
            .where(ProductTag.product_id == product_id)
            .order_by(Tag.name)
        ).all())
