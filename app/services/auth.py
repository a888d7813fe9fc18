from datetime import timedelta
from typing import Optional, Tuple
from sqlalchemy import func
from sqlmodel import Session, select

from app.core.errors import Conflict, ValidationFailed
from app.core.logging import get_logger
from app.core.security import create_access_token, get_password_hash, verify_password
from app.db.session import atomic
from app.models.user import User
from app.services.soft_delete import not_deleted

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


class AuthService:
    def __init__(self, session: Session):
        self.session = session

    def get_user_by_email(self, email: str) -> Optional[User]:
        # Case-insensitive lookup; tombstoned accounts cannot sign in
        return self.session.exec(
            select(User).where(func.lower(User.email) == email.strip().lower(), not_deleted(User))
        ).first()

    def register_user(self, email: str, password: str, name: Optional[str] = None) -> User:
        email = (email or "").strip().lower()
        if "@" not in email:
            raise ValidationFailed("A valid email is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        with atomic(self.session):
            if self.session.exec(select(User.id).where(func.lower(User.email) == email)).first() is not None:
                raise Conflict("Email already registered")
            user = User(email=email, name=name, password_hash=get_password_hash(password))
            self.session.add(user)

        self.session.refresh(user)
        logger.info("user_registered", user_id=user.id)
        return user

    def authenticate_user(self, email: str, password: str) -> Tuple[Optional[User], Optional[str]]:
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None, "Incorrect email or password"
        return user, None

    def issue_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        return create_access_token(data={"sub": user.email}, expires_delta=expires_delta)
