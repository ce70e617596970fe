"""Category repository - Database operations for categories"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Category, ConsultationType


class CategoryRepository:
    """Repository for category database operations"""

    @staticmethod
    def get_active(db: Session) -> list[Category]:
        """Active categories ordered by name (public listing)"""
        return db.query(Category).filter(Category.status == "active").order_by(Category.name.asc()).all()

    @staticmethod
    def get_all(db: Session, parent_id: Optional[int] = None) -> list[Category]:
        """
        All categories ordered by display_order then name.
        parent_id=0 selects top level categories.
        """
        query = db.query(Category)
        if parent_id is not None:
            if parent_id == 0:
                query = query.filter(Category.parent_id.is_(None))
            else:
                query = query.filter(Category.parent_id == parent_id)
        return query.order_by(Category.display_order.asc(), Category.name.asc()).all()

    @staticmethod
    def get_with_counts(db: Session) -> list[tuple[Category, int]]:
        return (
            db.query(Category, func.count(ConsultationType.id))
            .outerjoin(ConsultationType, ConsultationType.category_id == Category.id)
            .group_by(Category.id)
            .order_by(Category.display_order.asc(), Category.name.asc())
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, category_id: int) -> Optional[Category]:
        return db.query(Category).filter(Category.id == category_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Category]:
        return db.query(Category).filter(Category.slug == slug).first()

    @staticmethod
    def create(db: Session, **data) -> Category:
        category = Category(**data)
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    @staticmethod
    def update(db: Session, category: Category, **updates) -> Category:
        for key, value in updates.items():
            if hasattr(category, key):
                setattr(category, key, value)
        db.commit()
        db.refresh(category)
        return category

    @staticmethod
    def delete(db: Session, category: Category) -> None:
        db.delete(category)
        db.commit()

    @staticmethod
    def count_children(db: Session, category_id: int) -> int:
        return db.query(func.count(Category.id)).filter(Category.parent_id == category_id).scalar() or 0

    @staticmethod
    def count_types(db: Session, category_id: int) -> int:
        return (
            db.query(func.count(ConsultationType.id))
            .filter(ConsultationType.category_id == category_id)
            .scalar()
            or 0
        )
