from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, StrictBool, StrictInt
from pydantic.alias_generators import to_camel
from sqlmodel import Session

from app.core.config import settings
from app.core.errors import ValidationFailed
from app.db.session import get_session
from app.models.review import ReviewStatus
from app.models.user import User
from app.routers.auth import get_current_user, get_current_user_optional
from app.services.query import ReviewQuery
from app.services.review import ReviewService
from app.services.votes import VoteService

router = APIRouter()


class ReviewCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    product_id: int
    # Range is checked by the service so the message stays consistent
    rating: StrictInt
    title: Optional[str] = None
    content: str
    pros: Optional[List[str]] = None
    cons: Optional[List[str]] = None


class ReviewUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    rating: Optional[StrictInt] = None
    title: Optional[str] = None
    content: Optional[str] = None
    pros: Optional[List[str]] = None
    cons: Optional[List[str]] = None


class VoteIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_helpful: StrictBool


def get_review_service(session: Session = Depends(get_session)) -> ReviewService:
    return ReviewService(session)


def get_vote_service(session: Session = Depends(get_session)) -> VoteService:
    return VoteService(session)


def parse_review_status(value: Optional[str], default: Optional[ReviewStatus]) -> Optional[ReviewStatus]:
    if value is None:
        return default
    if value == "all":
        return None
    try:
        return ReviewStatus(value)
    except ValueError:
        raise ValidationFailed(f"Unknown status: {value}")


@router.get("")
def read_reviews(
    product_id: Optional[int] = Query(None, alias="productId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    status: Optional[str] = None,
    sort: str = "created_at",
    order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(settings.REVIEW_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: Optional[User] = Depends(get_current_user_optional),
    service: ReviewService = Depends(get_review_service),
):
    query = ReviewQuery(
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        status=parse_review_status(status, default=ReviewStatus.APPROVED),
        product_id=product_id,
        user_id=user_id,
    )
    result = service.list_reviews(query, current_user)
    return result.render("reviews", service.with_authors(result.items))


@router.post("", status_code=201)
def create_review(
    review_in: ReviewCreate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.create(review_in.model_dump(), current_user)
    return {"message": "Review created successfully", "review": review.model_dump(mode="json")}


@router.get("/{review_id}")
def read_review(
    review_id: int,
    current_user: Optional[User] = Depends(get_current_user_optional),
    service: ReviewService = Depends(get_review_service),
):
    review = service.get(review_id, current_user)
    return {"review": service.with_authors([review])[0]}


@router.put("/{review_id}")
def update_review(
    review_id: int,
    review_in: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.update(review_id, review_in.model_dump(exclude_unset=True), current_user)
    return {"message": "Review updated successfully", "review": review.model_dump(mode="json")}


@router.delete("/{review_id}")
def delete_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    service.delete(review_id, current_user)
    return {"message": "Review deleted successfully"}


@router.post("/{review_id}/vote")
def vote_review(
    review_id: int,
    vote_in: VoteIn,
    current_user: User = Depends(get_current_user),
    service: VoteService = Depends(get_vote_service),
):
    vote, helpful_count = service.cast_vote(review_id, current_user, vote_in.is_helpful)
    return {"message": "Vote recorded successfully", "helpfulCount": helpful_count, "isHelpful": vote.is_helpful}


@router.get("/{review_id}/vote")
def read_vote(
    review_id: int,
    current_user: Optional[User] = Depends(get_current_user_optional),
    service: VoteService = Depends(get_vote_service),
):
    if current_user is None:
        return {"voted": False, "isHelpful": None}
    vote = service.get_vote(review_id, current_user)
    if vote is None:
        return {"voted": False, "isHelpful": None}
    return {"voted": True, "isHelpful": vote.is_helpful}
