from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import Session

from app.core.config import settings
from app.db.session import get_session
from app.models.user import User
from app.routers.auth import get_admin_user
from app.routers.products import parse_product_status
from app.routers.reviews import parse_review_status
from app.services.product import ProductService
from app.services.query import ProductQuery, ReviewQuery
from app.services.review import ReviewService

router = APIRouter()


# Pydantic models for requests
class AdminProductUpdate(BaseModel):
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
    is_featured: Optional[bool] = None


class RejectReason(BaseModel):
    reason: Optional[str] = None


def get_product_service(session: Session = Depends(get_session)) -> ProductService:
    return ProductService(session)


def get_review_service(session: Session = Depends(get_session)) -> ReviewService:
    return ReviewService(session)


# Product moderation endpoints

@router.get("/products")
def list_products(
    search: Optional[str] = None,
    category: Optional[int] = None,
    pricing: Optional[str] = None,
    featured: bool = False,
    status: Optional[str] = None,
    include_deleted: bool = Query(False, alias="includeDeleted"),
    sort: str = "created_at",
    order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(settings.ADMIN_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: User = Depends(get_admin_user),
    service: ProductService = Depends(get_product_service),
):
    """Every status by default, with per-status counts under the same filters."""
    query = ProductQuery(
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        include_deleted=include_deleted,
        status=parse_product_status(status, default=None),
        search=search,
        category_id=category,
        pricing=pricing,
        featured=featured,
    )
    return service.list_admin_products(query, admin).render("products")


@router.put("/products/{product_id}")
def update_product(
    product_id: int,
    product_in: AdminProductUpdate,
    admin: User = Depends(get_admin_user),
    service: ProductService = Depends(get_product_service),
):
    product = service.update_by_id(product_id, product_in.model_dump(exclude_unset=True), admin)
    return {"message": "Product updated successfully", "product": product.model_dump(mode="json")}


@router.delete("/products/{product_id}")
def delete_product(
    product_id: int,
    admin: User = Depends(get_admin_user),
    service: ProductService = Depends(get_product_service),
):
    service.delete_by_id(product_id, admin)
    return {"message": "Product deleted successfully"}


@router.post("/products/{product_id}/approve")
def approve_product(
    product_id: int,
    admin: User = Depends(get_admin_user),
    service: ProductService = Depends(get_product_service),
):
    product = service.approve(product_id, admin)
    return {"message": "Product approved successfully", "product": product.model_dump(mode="json")}


@router.post("/products/{product_id}/reject")
def reject_product(
    product_id: int,
    body: Optional[RejectReason] = None,
    admin: User = Depends(get_admin_user),
    service: ProductService = Depends(get_product_service),
):
    reason = body.reason if body else None
    product = service.reject(product_id, admin, reason)
    return {"message": "Product rejected successfully", "product": product.model_dump(mode="json"), "reason": reason}


@router.post("/products/{product_id}/restore")
def restore_product(
    product_id: int,
    admin: User = Depends(get_admin_user),
    service: ProductService = Depends(get_product_service),
):
    product = service.restore(product_id, admin)
    return {"message": "Product restored successfully", "product": product.model_dump(mode="json")}


@router.post("/products/{product_id}/recompute-rating")
def recompute_product_rating(
    product_id: int,
    admin: User = Depends(get_admin_user),
    service: ProductService = Depends(get_product_service),
):
    product = service.recompute_rating(product_id, admin)
    return {"product": product.model_dump(mode="json")}


# Review moderation endpoints

@router.get("/reviews")
def list_reviews(
    product_id: Optional[int] = Query(None, alias="productId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    status: Optional[str] = None,
    include_deleted: bool = Query(False, alias="includeDeleted"),
    sort: str = "created_at",
    order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(settings.ADMIN_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: User = Depends(get_admin_user),
    service: ReviewService = Depends(get_review_service),
):
    query = ReviewQuery(
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        include_deleted=include_deleted,
        status=parse_review_status(status, default=None),
        product_id=product_id,
        user_id=user_id,
    )
    result = service.list_admin_reviews(query, admin)
    return result.render("reviews", service.with_authors(result.items))


@router.post("/reviews/{review_id}/approve")
def approve_review(
    review_id: int,
    admin: User = Depends(get_admin_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.approve(review_id, admin)
    return {"message": "Review approved successfully", "review": review.model_dump(mode="json")}


@router.post("/reviews/{review_id}/reject")
def reject_review(
    review_id: int,
    body: Optional[RejectReason] = None,
    admin: User = Depends(get_admin_user),
    service: ReviewService = Depends(get_review_service),
):
    reason = body.reason if body else None
    review = service.reject(review_id, admin, reason)
    return {"message": "Review rejected successfully", "review": review.model_dump(mode="json"), "reason": reason}


@router.post("/reviews/{review_id}/restore")
def restore_review(
    review_id: int,
    admin: User = Depends(get_admin_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.restore(review_id, admin)
    return {"message": "Review restored successfully", "review": review.model_dump(mode="json")}
