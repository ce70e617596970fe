"""Consultation type service - Business logic for bookable services"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Booking, Category, ConsultationType
from ...shared.errors import api_error
from ...shared.slugs import unique_slug
from .repository import ConsultationTypeRepository
from .schemas import ConsultationTypeCreate, ConsultationTypeUpdate

logger = logging.getLogger(__name__)


def calculate_deposit(consultation_type: ConsultationType) -> float:
    """Deposit due for a type: a fixed amount, or a percentage of the price"""
    amount = consultation_type.deposit_amount or 0
    if amount <= 0:
        return 0.0
    if consultation_type.deposit_type == "percentage":
        return round((consultation_type.price or 0) * amount / 100, 2)
    return round(float(amount), 2)


class ConsultationTypeService:
    """Service layer for consultation types"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ConsultationTypeRepository()

    def list_types(
        self,
        status: Optional[str] = "active",
        category_id: Optional[int] = None,
        order_by: str = "name",
        order: str = "asc",
    ) -> list[ConsultationType]:
        return self.repo.get_all(self.db, status=status, category_id=category_id, order_by=order_by, order=order)

    def get_type(self, type_id: int) -> ConsultationType:
        consultation_type = self.repo.get_by_id(self.db, type_id)
        if not consultation_type:
            raise HTTPException(status_code=404, detail="Consultation type not found")
        return consultation_type

    def get_public_type_by_slug(self, slug: str) -> ConsultationType:
        consultation_type = self.repo.get_by_slug(self.db, slug)
        if not consultation_type:
            raise api_error(404, "not_found", "Consultation type not found.")
        return consultation_type

    def create_type(self, data: ConsultationTypeCreate) -> ConsultationType:
        self._check_category(data.category_id)

        values = data.model_dump()
        values["slug"] = unique_slug(self.db, ConsultationType, data.slug or data.name)
        consultation_type = self.repo.create(self.db, **values)
        logger.info(f"✅ Consultation type created: {consultation_type.slug}")
        return consultation_type

    def update_type(self, type_id: int, data: ConsultationTypeUpdate) -> ConsultationType:
        consultation_type = self.get_type(type_id)
        updates = data.model_dump(exclude_unset=True)

        if "category_id" in updates:
            self._check_category(updates["category_id"])
        if "name" in updates and (not updates["name"] or not updates["name"].strip()):
            raise HTTPException(status_code=400, detail="Name is required")
        if updates.get("slug"):
            updates["slug"] = unique_slug(self.db, ConsultationType, updates["slug"], exclude_id=type_id)
        else:
            updates.pop("slug", None)

        return self.repo.update(self.db, consultation_type, **updates)

    def delete_type(self, type_id: int) -> dict:
        consultation_type = self.get_type(type_id)

        has_bookings = self.db.query(Booking.id).filter(Booking.consultation_type_id == type_id).first()
        if has_bookings:
            raise HTTPException(
                status_code=400,
                detail="Consultation type has bookings. Set it to inactive instead of deleting it.",
            )

        self.repo.delete(self.db, consultation_type)
        logger.info(f"🗑️ Consultation type deleted: {type_id}")
        return {"message": "Consultation type deleted"}

    def _check_category(self, category_id: Optional[int]):
        if category_id is None:
            return
        if not self.db.query(Category.id).filter(Category.id == category_id).first():
            raise HTTPException(status_code=400, detail="Category not found")
