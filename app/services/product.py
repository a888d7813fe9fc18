import dataclasses
import re
from datetime import datetime
from typing import Any, Dict, Optional
from sqlmodel import Session, select

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.core.logging import get_logger
from app.db.session import atomic
from app.models.category import Category
from app.models.product import AGGREGATE_FIELDS, Product, ProductImage, ProductStatus
from app.models.tag import ProductTag
from app.models.user import User
from app.services import moderation
from app.services.catalog import CatalogService
from app.services.query import Page, ProductQuery, QueryBuilder
from app.services.rating import RatingAggregator
from app.services.review import ReviewService
from app.services.soft_delete import exclude_deleted, get_active, mark_deleted, mark_restored

logger = get_logger(__name__)

# Fields an owner may change; any change sends the product back to moderation
EDITABLE_FIELDS = frozenset({
    "name",
    "description",
    "short_description",
    "website",
    "pricing",
    "pricing_details",
    "features",
    "specifications",
    "category_id",
})
ADMIN_EDITABLE_FIELDS = EDITABLE_FIELDS | {"is_featured"}

# Never accepted from a request
PROTECTED_FIELDS = AGGREGATE_FIELDS | {"status", "slug", "submitted_by", "deleted_at"}


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class ProductService:
    def __init__(self, session: Session):
        self.session = session
        self.catalog = CatalogService(session)
        self.queries = QueryBuilder(session)
        self.ratings = RatingAggregator(session)

    # Reads

    def get_by_slug(self, slug: str, actor: Optional[User] = None) -> Product:
        product = self.session.exec(
            exclude_deleted(select(Product).where(Product.slug == slug), Product)
        ).first()
        if not product:
            raise NotFound("Product not found")
        if product.status != ProductStatus.APPROVED and not moderation.can_view(actor, product.submitted_by):
            raise NotFound("Product not found")
        return product

    def list_products(self, query: ProductQuery, actor: Optional[User] = None) -> Page:
        """Public listing; only admins may look past approved products."""
        if query.status != ProductStatus.APPROVED or query.include_deleted:
            moderation.require_admin(actor)
        return self.queries.list_products(query)

    def list_own_products(self, query: ProductQuery, actor: Optional[User]) -> Page:
        """Everything the actor submitted, in any moderation state."""
        actor = moderation.require_actor(actor)
        return self.queries.list_products(dataclasses.replace(query, submitted_by=actor.id, include_deleted=False), with_counts=True)

    def list_admin_products(self, query: ProductQuery, actor: Optional[User]) -> Page:
        moderation.require_admin(actor)
        return self.queries.list_products(query, with_counts=True)

    def detail(self, product: Product) -> Dict[str, Any]:
        category = self.session.get(Category, product.category_id)
        submitter = self.session.get(User, product.submitted_by)
        images = self.session.exec(
            select(ProductImage)
            .where(ProductImage.product_id == product.id)
            .order_by(ProductImage.order, ProductImage.id)
        ).all()
        recent = self.queries.recent_reviews(product.id)
        return {
            **product.model_dump(mode="json"),
            "category": category.model_dump(mode="json", include={"id", "name", "slug", "description"}) if category else None,
            "submitter": {"id": submitter.id, "name": submitter.name} if submitter else None,
            "images": [image.model_dump(mode="json", exclude={"product_id", "created_at"}) for image in images],
            "tags": [tag.model_dump(mode="json", exclude={"created_at"}) for tag in self.catalog.tags_for_product(product.id)],
            "rating_distribution": self.ratings.rating_distribution(product.id),
            "recent_reviews": ReviewService(self.session).with_authors(recent),
        }

    # Writes

    def _check_changes(self, changes: Dict[str, Any], allowed: frozenset) -> Dict[str, Any]:
        protected = sorted(set(changes) & PROTECTED_FIELDS)
        if protected:
            raise ValidationFailed(f"{', '.join(protected)} cannot be set directly")
        accepted = {field: value for field, value in changes.items() if field in allowed}
        for required in ("name", "description"):
            if required in accepted and not (accepted[required] or "").strip():
                raise ValidationFailed(f"{required} cannot be empty")
        if "category_id" in accepted:
            if accepted["category_id"] is None:
                raise ValidationFailed("category_id cannot be empty")
            self.catalog.require_category(accepted["category_id"])
        return accepted

    def submit(self, data: Dict[str, Any], actor: Optional[User]) -> Product:
        actor = moderation.require_actor(actor)
        name = (data.get("name") or "").strip()
        description = (data.get("description") or "").strip()
        if not name or not description or not data.get("category_id"):
            raise ValidationFailed("Name, description, and category are required")

        fields = self._check_changes(
            {key: value for key, value in data.items() if key not in ("images", "tag_ids")},
            EDITABLE_FIELDS,
        )
        fields["name"] = name
        slug = slugify(name)
        if not slug:
            raise ValidationFailed("Name must contain letters or digits")
        tags = self.catalog.require_tags(data.get("tag_ids") or [])
        images = data.get("images") or []
        for image in images:
            if not image.get("url"):
                raise ValidationFailed("Every image needs a url")

        with atomic(self.session):
            if self.session.exec(select(Product.id).where(Product.slug == slug)).first() is not None:
                raise Conflict("Product with this name already exists")

            product = Product(**fields, slug=slug, submitted_by=actor.id, status=ProductStatus.PENDING)
            self.session.add(product)
            self.session.flush()

            for index, image in enumerate(images):
                self.session.add(ProductImage(
                    product_id=product.id,
                    url=image["url"],
                    alt=image.get("alt") or name,
                    is_primary=index == 0,
                    order=index + 1,
                ))
            for tag in tags:
                self.session.add(ProductTag(product_id=product.id, tag_id=tag.id))

        self.session.refresh(product)
        logger.info("product_submitted", product_id=product.id, slug=product.slug, user_id=actor.id)
        return product

    def _apply_update(self, product: Product, changes: Dict[str, Any], actor: User) -> Product:
        is_owner = product.submitted_by == actor.id
        accepted = self._check_changes(changes, EDITABLE_FIELDS if is_owner or not actor.is_admin else ADMIN_EDITABLE_FIELDS)
        if not accepted:
            return product

        with atomic(self.session):
            for field, value in accepted.items():
                setattr(product, field, value.strip() if field in ("name", "description") else value)
            product.updated_at = datetime.utcnow()
            if is_owner:
                moderation.reset_product_for_review(product)
            self.session.add(product)

        self.session.refresh(product)
        logger.info("product_updated", product_id=product.id, user_id=actor.id, fields=sorted(accepted))
        return product

    def update(self, slug: str, changes: Dict[str, Any], actor: Optional[User]) -> Product:
        actor = moderation.require_actor(actor)
        product = self.get_by_slug(slug, actor)
        moderation.require_owner_or_admin(actor, product.submitted_by)
        return self._apply_update(product, changes, actor)

    def update_by_id(self, product_id: int, changes: Dict[str, Any], actor: Optional[User]) -> Product:
        moderation.require_admin(actor)
        product = get_active(self.session, Product, product_id, label="Product")
        return self._apply_update(product, changes, actor)

    def _soft_delete(self, product: Product, actor: User) -> Product:
        moderation.require_owner_or_admin(actor, product.submitted_by)
        with atomic(self.session):
            mark_deleted(product)
            self.session.add(product)
        logger.info("product_deleted", product_id=product.id, user_id=actor.id)
        return product

    def delete(self, slug: str, actor: Optional[User]) -> Product:
        actor = moderation.require_actor(actor)
        return self._soft_delete(self.get_by_slug(slug, actor), actor)

    def delete_by_id(self, product_id: int, actor: Optional[User]) -> Product:
        actor = moderation.require_admin(actor)
        return self._soft_delete(get_active(self.session, Product, product_id, label="Product"), actor)

    def restore(self, product_id: int, actor: Optional[User]) -> Product:
        actor = moderation.require_admin(actor)
        product = get_active(self.session, Product, product_id, label="Product", include_deleted=True)
        if product.deleted_at is None:
            raise Conflict("Product is not deleted")
        with atomic(self.session):
            mark_restored(product)
            self.session.add(product)
        self.session.refresh(product)
        logger.info("product_restored", product_id=product.id, user_id=actor.id)
        return product

    # Moderation

    def approve(self, product_id: int, actor: Optional[User]) -> Product:
        moderation.require_admin(actor)
        with atomic(self.session):
            product = get_active(self.session, Product, product_id, label="Product", for_update=True)
            moderation.approve_product(product, actor)
            self.session.add(product)
        self.session.refresh(product)
        return product

    def reject(self, product_id: int, actor: Optional[User], reason: Optional[str] = None) -> Product:
        moderation.require_admin(actor)
        with atomic(self.session):
            product = get_active(self.session, Product, product_id, label="Product", for_update=True)
            moderation.reject_product(product, actor, reason)
            self.session.add(product)
        self.session.refresh(product)
        return product

    def recompute_rating(self, product_id: int, actor: Optional[User]) -> Product:
        moderation.require_admin(actor)
        with atomic(self.session):
            product = self.ratings.recompute_product_rating(product_id)
        self.session.refresh(product)
        return product

