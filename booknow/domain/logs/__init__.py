"""Logs domain - error log and email log administration"""

from .router import admin_router

__all__ = ["admin_router"]
