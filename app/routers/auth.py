from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlmodel import Session
from pydantic import BaseModel

from app.core.errors import PermissionDenied, Unauthenticated
from app.core.logging import add_context
from app.core.security import decode_access_token
from app.db.session import get_session
from app.models.user import User, UserRead
from app.services.auth import AuthService

router = APIRouter()

# auto_error is off so a missing token is reported through the shared error envelope
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/token", auto_error=False)


class Token(BaseModel):
    access_token: str
    token_type: str


class UserCreate(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


def get_auth_service(session: Session = Depends(get_session)) -> AuthService:
    return AuthService(session)


@router.post("/register", response_model=UserRead, status_code=201)
def register(user_in: UserCreate, service: AuthService = Depends(get_auth_service)):
    return service.register_user(user_in.email, user_in.password, name=user_in.name)


@router.post("/token", response_model=Token)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: AuthService = Depends(get_auth_service),
):
    user, error_message = service.authenticate_user(form_data.username, form_data.password)
    if not user:
        raise Unauthenticated(error_message)
    return {"access_token": service.issue_token(user), "token_type": "bearer"}


def _user_from_token(token: Optional[str], service: AuthService) -> Optional[User]:
    if not token:
        return None
    email = decode_access_token(token)
    if email is None:
        return None
    user = service.get_user_by_email(email)
    if user is not None:
        add_context(user_id=user.id)
    return user


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    service: AuthService = Depends(get_auth_service),
) -> User:
    user = _user_from_token(token, service)
    if user is None:
        raise Unauthenticated("Could not validate credentials")
    return user


def get_current_user_optional(
    token: Optional[str] = Depends(oauth2_scheme),
    service: AuthService = Depends(get_auth_service),
) -> Optional[User]:
    return _user_from_token(token, service)


def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise PermissionDenied("Admin access required")
    return current_user
