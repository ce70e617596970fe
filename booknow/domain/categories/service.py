"""Category service - Business logic for category operations"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Category
from ...shared.slugs import unique_slug
from ...utils.sanitization import sanitize_string
from .repository import CategoryRepository
from .schemas import CategoryCreate, CategoryUpdate

logger = logging.getLogger(__name__)


class CategoryService:
    """Service layer for category business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CategoryRepository()

    def get_public_categories(self) -> list[Category]:
        return self.repo.get_active(self.db)

    def get_categories_with_counts(self) -> list[dict]:
        return [
            {**self._to_dict(category), "type_count": count}
            for category, count in self.repo.get_with_counts(self.db)
        ]

    def get_category(self, category_id: int) -> Category:
        category = self.repo.get_by_id(self.db, category_id)
        if not category:
            raise HTTPException(status_code=404, detail="Category not found")
        return category

    def create_category(self, data: CategoryCreate) -> Category:
        if data.parent_id is not None:
            self.get_category(data.parent_id)

        category = self.repo.create(
            self.db,
            name=sanitize_string(data.name),
            slug=unique_slug(self.db, Category, data.slug or data.name),
            description=data.description,
            parent_id=data.parent_id,
            display_order=data.display_order,
            status=data.status,
        )
        logger.info(f"✅ Category created: {category.slug}")
        return category

    def update_category(self, category_id: int, data: CategoryUpdate) -> Category:
        category = self.get_category(category_id)
        updates = data.model_dump(exclude_unset=True)

        if "parent_id" in updates and updates["parent_id"] is not None:
            if updates["parent_id"] == category_id:
                raise HTTPException(status_code=400, detail="A category cannot be its own parent")
            self.get_category(updates["parent_id"])

        if "name" in updates:
            if not updates["name"] or not updates["name"].strip():
                raise HTTPException(status_code=400, detail="Name is required")
            updates["name"] = sanitize_string(updates["name"])

        if updates.get("slug"):
            updates["slug"] = unique_slug(self.db, Category, updates["slug"], exclude_id=category_id)
        else:
            updates.pop("slug", None)

        return self.repo.update(self.db, category, **updates)

    def delete_category(self, category_id: int) -> dict:
        category = self.get_category(category_id)

        if self.repo.count_children(self.db, category_id):
            raise HTTPException(status_code=400, detail="Cannot delete a category that has subcategories")
        if self.repo.count_types(self.db, category_id):
            raise HTTPException(status_code=400, detail="Cannot delete a category used by consultation types")

        self.repo.delete(self.db, category)
        logger.info(f"🗑️ Category deleted: {category_id}")
        return {"message": "Category deleted"}

    @staticmethod
    def _to_dict(category: Category) -> dict:
        return {
            "id": category.id,
            "name": category.name,
            "slug": category.slug,
            "description": category.description,
            "parent_id": category.parent_id,
            "display_order": category.display_order,
            "status": category.status,
            "created_at": category.created_at,
        }
