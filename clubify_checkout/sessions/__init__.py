from .repository import SessionRepository
from .service import SessionService

__all__ = ["SessionRepository", "SessionService"]
