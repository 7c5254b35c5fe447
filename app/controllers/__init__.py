"""FastAPI routers acting as controllers in the MVC architecture."""

from . import sessions

__all__ = ["sessions"]
