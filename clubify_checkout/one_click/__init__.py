from .repository import OneClickRepository
from .service import OneClickService

__all__ = ["OneClickRepository", "OneClickService"]
