from typing import Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import Enum as SAEnum

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"  # May moderate products and reviews

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Basic Info
    name: Optional[str] = Field(default=None, max_length=100)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str

    # Profile
    avatar: Optional[str] = None
    bio: Optional[str] = None

    # Account Status
    role: UserRole = Field(
        default=UserRole.USER,
        sa_column=Column(SAEnum(UserRole, values_callable=lambda x: [e.value for e in x]), nullable=False)
    )
    is_verified: bool = Field(default=False)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserRead(SQLModel):
    id: int
    name: Optional[str] = None
    email: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    role: UserRole
    is_verified: bool
    created_at: datetime
