"""Tombstone handling shared by every read path.

Rows are never physically removed; ``deleted_at`` marks them as gone. Reads
compose :func:`not_deleted` in by default, and ``include_deleted=True`` is only
passed from the admin audit and restore paths.
"""
from datetime import datetime
from typing import Optional, Type, TypeVar
from sqlmodel import Session, SQLModel, select

from app.core.errors import NotFound

ModelT = TypeVar("ModelT", bound=SQLModel)


def not_deleted(model: Type[SQLModel]):
    return model.deleted_at.is_(None)


def exclude_deleted(statement, *models: Type[SQLModel], include_deleted: bool = False):
    if include_deleted:
        return statement
    for model in models:
        statement = statement.where(not_deleted(model))
    return statement


def get_active(
    session: Session,
    model: Type[ModelT],
    pk: int,
    label: Optional[str] = None,
    include_deleted: bool = False,
    for_update: bool = False,
) -> ModelT:
    """Load a row by primary key, treating tombstoned rows as missing."""
    statement = exclude_deleted(select(model).where(model.id == pk), model, include_deleted=include_deleted)
    if for_update:
        statement = statement.with_for_update()
    obj = session.exec(statement).first()
    if obj is None:
        raise NotFound(f"{label or model.__name__} not found")
    return obj


def mark_deleted(obj: SQLModel) -> SQLModel:
    now = datetime.utcnow()
    obj.deleted_at = now
    obj.updated_at = now
    return obj


def mark_restored(obj: SQLModel) -> SQLModel:
    obj.deleted_at = None
    obj.updated_at = datetime.utcnow()
    return obj
