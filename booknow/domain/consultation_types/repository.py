"""Consultation type repository - Database operations for bookable services"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import ConsultationType

ALLOWED_ORDER_BY = ("name", "price", "duration", "created_at", "id")


class ConsultationTypeRepository:
    """Repository for consultation type database operations"""

    @staticmethod
    def get_all(
        db: Session,
        status: Optional[str] = "active",
        category_id: Optional[int] = None,
        order_by: str = "name",
        order: str = "asc",
    ) -> list[ConsultationType]:
        """List types. status=None returns every status."""
        query = db.query(ConsultationType)

        if status:
            query = query.filter(ConsultationType.status == status)
        if category_id:
            query = query.filter(ConsultationType.category_id == category_id)

        column = getattr(ConsultationType, order_by if order_by in ALLOWED_ORDER_BY else "name")
        column = column.desc() if str(order).lower() == "desc" else column.asc()
        return query.order_by(column).all()

    @staticmethod
    def get_by_id(db: Session, type_id: int) -> Optional[ConsultationType]:
        return db.query(ConsultationType).filter(ConsultationType.id == type_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[ConsultationType]:
        return db.query(ConsultationType).filter(ConsultationType.slug == slug).first()

    @staticmethod
    def create(db: Session, **data) -> ConsultationType:
        consultation_type = ConsultationType(**data)
        db.add(consultation_type)
        db.commit()
        db.refresh(consultation_type)
        return consultation_type

    @staticmethod
    def update(db: Session, consultation_type: ConsultationType, **updates) -> ConsultationType:
        for key, value in updates.items():
            if hasattr(consultation_type, key):
                setattr(consultation_type, key, value)
        db.commit()
        db.refresh(consultation_type)
        return consultation_type

    @staticmethod
    def delete(db: Session, consultation_type: ConsultationType) -> None:
        db.delete(consultation_type)
        db.commit()

    @staticmethod
    def count_by_status(db: Session, status: str = "active") -> int:
        return (
            db.query(func.count(ConsultationType.id))
            .filter(ConsultationType.status == status)
            .scalar()
            or 0
        )
