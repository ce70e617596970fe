"""Consultation type router - FastAPI endpoints for bookable services"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...security import get_current_admin
from .schemas import ConsultationTypeCreate, ConsultationTypeResponse, ConsultationTypeUpdate
from .service import ConsultationTypeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/consultation-types", tags=["Consultation Types"])
admin_router = APIRouter(
    prefix="/consultation-types",
    tags=["Admin: Consultation Types"],
    dependencies=[Depends(get_current_admin)],
)


def get_consultation_type_service(db: Session = Depends(get_db)) -> ConsultationTypeService:
    """Dependency injection for ConsultationTypeService"""
    return ConsultationTypeService(db)


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("", response_model=list[ConsultationTypeResponse])
async def list_consultation_types(
    category: Optional[int] = Query(None),
    status: str = Query("active"),
    service: ConsultationTypeService = Depends(get_consultation_type_service),
):
    """Consultation types, active only unless another status is requested"""
    return service.list_types(status=status, category_id=category)


@router.get("/{slug}", response_model=ConsultationTypeResponse)
async def get_consultation_type(
    slug: str, service: ConsultationTypeService = Depends(get_consultation_type_service)
):
    return service.get_public_type_by_slug(slug)


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("", response_model=list[ConsultationTypeResponse])
async def admin_list_consultation_types(
    status: Optional[str] = Query(None),
    category: Optional[int] = Query(None),
    orderby: str = Query("name"),
    order: str = Query("asc"),
    service: ConsultationTypeService = Depends(get_consultation_type_service),
):
    return service.list_types(status=status, category_id=category, order_by=orderby, order=order)


@admin_router.get("/{type_id}", response_model=ConsultationTypeResponse)
async def admin_get_consultation_type(
    type_id: int, service: ConsultationTypeService = Depends(get_consultation_type_service)
):
    return service.get_type(type_id)


@admin_router.post("", response_model=ConsultationTypeResponse, status_code=201)
async def admin_create_consultation_type(
    data: ConsultationTypeCreate,
    service: ConsultationTypeService = Depends(get_consultation_type_service),
):
    return service.create_type(data)


@admin_router.put("/{type_id}", response_model=ConsultationTypeResponse)
async def admin_update_consultation_type(
    type_id: int,
    data: ConsultationTypeUpdate,
    service: ConsultationTypeService = Depends(get_consultation_type_service),
):
    return service.update_type(type_id, data)


@admin_router.delete("/{type_id}")
async def admin_delete_consultation_type(
    type_id: int, service: ConsultationTypeService = Depends(get_consultation_type_service)
):
    return service.delete_type(type_id)


__all__ = ["router", "admin_router"]
