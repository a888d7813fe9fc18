from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.db.session import get_session
from app.services.catalog import CatalogService
from app.services.stats import StatsService

router = APIRouter()


def get_catalog_service(session: Session = Depends(get_session)) -> CatalogService:
    return CatalogService(session)


@router.get("/categories")
def read_categories(service: CatalogService = Depends(get_catalog_service)):
    return {"categories": service.list_categories()}


@router.get("/tags")
def read_tags(service: CatalogService = Depends(get_catalog_service)):
    return {"tags": service.list_tags()}


@router.get("/stats")
def read_stats(session: Session = Depends(get_session)):
    return StatsService(session).platform_stats()
