"""Category router - FastAPI endpoints for category operations"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...security import get_current_admin
from .schemas import CategoryCreate, CategoryResponse, CategoryUpdate, CategoryWithCountResponse
from .service import CategoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["Categories"])
admin_router = APIRouter(
    prefix="/categories", tags=["Admin: Categories"], dependencies=[Depends(get_current_admin)]
)


def get_category_service(db: Session = Depends(get_db)) -> CategoryService:
    """Dependency injection for CategoryService"""
    return CategoryService(db)


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("", response_model=list[CategoryResponse])
async def list_categories(service: CategoryService = Depends(get_category_service)):
    """Active categories ordered by name"""
    return service.get_public_categories()


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("", response_model=list[CategoryWithCountResponse])
async def admin_list_categories(service: CategoryService = Depends(get_category_service)):
    """All categories with the number of consultation types in each"""
    return service.get_categories_with_counts()


@admin_router.get("/{category_id}", response_model=CategoryResponse)
async def admin_get_category(category_id: int, service: CategoryService = Depends(get_category_service)):
    return service.get_category(category_id)


@admin_router.post("", response_model=CategoryResponse, status_code=201)
async def admin_create_category(
    data: CategoryCreate, service: CategoryService = Depends(get_category_service)
):
    return service.create_category(data)


@admin_router.put("/{category_id}", response_model=CategoryResponse)
async def admin_update_category(
    category_id: int, data: CategoryUpdate, service: CategoryService = Depends(get_category_service)
):
    return service.update_category(category_id, data)


@admin_router.delete("/{category_id}")
async def admin_delete_category(category_id: int, service: CategoryService = Depends(get_category_service)):
    """Refused while the category has subcategories or consultation types"""
    return service.delete_category(category_id)


__all__ = ["router", "admin_router"]
