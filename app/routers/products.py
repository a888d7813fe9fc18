from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import Session

from app.core.config import settings
from app.core.errors import ValidationFailed
from app.db.session import get_session
from app.models.product import ProductStatus
from app.models.user import User
from app.routers.auth import get_current_user, get_current_user_optional
from app.services.product import ProductService
from app.services.query import ProductQuery

router = APIRouter()


class ProductImageIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    alt: Optional[str] = None


class ProductCreate(BaseModel):
    # Aggregates and moderation fields are rejected rather than ignored
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: str
    description: str
    short_description: Optional[str] = None
    website: Optional[str] = None
    pricing: Optional[str] = None
    pricing_details: Optional[Dict[str, Any]] = None
    features: Optional[List[str]] = None
    specifications: Optional[Dict[str, Any]] = None
    category_id: int
    images: List[ProductImageIn] = []
    tag_ids: List[int] = []


class ProductUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    website: Optional[str] = None
    pricing: Optional[str] = None
    pricing_details: Optional[Dict[str, Any]] = None
    features: Optional[List[str]] = None
    specifications: Optional[Dict[str, Any]] = None
    category_id: Optional[int] = None


def get_product_service(session: Session = Depends(get_session)) -> ProductService:
    return ProductService(session)


def parse_product_status(value: Optional[str], default: Optional[ProductStatus]) -> Optional[ProductStatus]:
    """``all`` lifts the status filter; anything unknown is a validation error."""
    if value is None:
        return default
    if value == "all":
        return None
    try:
        return ProductStatus(value)
    except ValueError:
        raise ValidationFailed(f"Unknown status: {value}")


@router.get("")
def read_products(
    search: Optional[str] = None,
    category: Optional[int] = None,
    pricing: Optional[str] = None,
    featured: bool = False,
    status: Optional[str] = None,
    sort: str = "created_at",
    order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: Optional[User] = Depends(get_current_user_optional),
    service: ProductService = Depends(get_product_service),
):
    query = ProductQuery(
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        status=parse_product_status(status, default=ProductStatus.APPROVED),
        search=search,
        category_id=category,
        pricing=pricing,
        featured=featured,
    )
    return service.list_products(query, current_user).render("products")


@router.post("", status_code=201)
def create_product(
    product_in: ProductCreate,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    product = service.submit(product_in.model_dump(), current_user)
    return {"message": "Product submitted for review", "product": product.model_dump(mode="json")}


@router.get("/{slug}")
def read_product(
    slug: str,
    current_user: Optional[User] = Depends(get_current_user_optional),
    service: ProductService = Depends(get_product_service),
):
    product = service.get_by_slug(slug, current_user)
    return {"product": service.detail(product)}


@router.put("/{slug}")
def update_product(
    slug: str,
    product_in: ProductUpdate,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    product = service.update(slug, product_in.model_dump(exclude_unset=True), current_user)
    return {"message": "Product updated successfully", "product": product.model_dump(mode="json")}


@router.delete("/{slug}")
def delete_product(
    slug: str,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    service.delete(slug, current_user)
    return {"message": "Product deleted successfully"}
