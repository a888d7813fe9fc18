# Import all models to register them with SQLModel
from app.models.user import User, UserRead, UserRole
from app.models.category import Category
from app.models.tag import Tag, ProductTag
from app.models.product import Product, ProductImage, ProductStatus, PricingType
from app.models.review import Review, ReviewStatus
from app.models.review_vote import ReviewVote

__all__ = [
    "User",
    "UserRead",
    "UserRole",
    "Category",
    "Tag",
    "ProductTag",
    "Product",
    "ProductImage",
    "ProductStatus",
    "PricingType",
    "Review",
    "ReviewStatus",
    "ReviewVote",
]
