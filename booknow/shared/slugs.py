"""Slug helpers for categories and consultation types"""

import re
import unicodedata
from typing import Optional

from sqlalchemy.orm import Session


def slugify(value: str) -> str:
    value = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9\s-]", "", value).strip().lower()
    return re.sub(r"[-\s]+", "-", value).strip("-")


def unique_slug(db: Session, model, slug: str, exclude_id: Optional[int] = None) -> str:
    """Append -1, -2, ... until no other row of `model` uses the slug"""
    base = slugify(slug) or "item"
    candidate = base
    counter = 1

    while True:
        query = db.query(model.id).filter(model.slug == candidate)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if not query.first():
            return candidate
        candidate = f"{base}-{counter}"
        counter += 1
