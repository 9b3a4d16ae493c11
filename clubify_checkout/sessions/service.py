"""
Cas d'usage 'sessions': cycle de vie d'une session de checkout distante.
- Chaque transition de statut est tracée par un événement de session
- Lectures en cache (session_<id>), invalidées à chaque écriture
"""
import logging
import secrets
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from clubify_checkout.errors import ValidationError
from clubify_checkout.infra.cache import CacheManager
from clubify_checkout.utils.dates import now_like, parse_datetime, utcnow

from .repository import SessionRepository

logger = logging.getLogger(__name__)

CACHE_TTL = 3600
SESSION_TTL = 7200
SESSION_STATUSES = ("initiated", "active", "processing", "completed", "abandoned", "expired", "failed", "error")


def is_expired(expires_at: Any, now: Optional[datetime] = None) -> bool:
    """Sans expires_at: jamais expirée. Date illisible: expirée."""
    try:
        deadline = parse_datetime(expires_at)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning("sessions.is_expired unreadable expires_at=%r", expires_at)
        return True
    if deadline is None:
        return False
    return deadline < now_like(deadline, now)


class SessionService:
    def __init__(self, repository: SessionRepository, cache: CacheManager):
        self.repository = repository
        self.cache = cache

    def invalidate(self, session_id: str) -> None:
        self.cache.delete(f"session_{session_id}", f"session_events_{session_id}")

    def create(self, organization_id: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not organization_id:
            raise ValidationError("organization_id est obligatoire pour créer une session")
        payload = {"status": "initiated", "currency": "BRL"}
        payload.update(data or {})
        payload.update({
            "organization_id": organization_id,
            "token": secrets.token_hex(32),
            "expires_at": (utcnow() + timedelta(seconds=SESSION_TTL)).isoformat(),
        })
        session = self.repository.create(payload)
        session_id = session.get("id")
        if session_id:
            self.add_event(str(session_id), {"type": "session_created", "data": {"organization_id": organization_id}})
        logger.info("sessions.create session_id=%s organization_id=%s", session_id, organization_id)
        return session

    def find(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self.cache.remember(f"session_{session_id}", CACHE_TTL, lambda: self.repository.find(session_id))

    def update(self, session_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        session = self.repository.update(session_id, data)
        self.invalidate(session_id)
        return session

    def update_status(self, session_id: str, status: str) -> Dict[str, Any]:
        if status not in SESSION_STATUSES:
            raise ValidationError(f"Statut de session invalide: {status}")
        session = self.repository.update_status(session_id, status)
        self.invalidate(session_id)
        self.add_event(session_id, {"type": "status_changed", "data": {"new_status": status}})
        logger.info("sessions.update_status session_id=%s status=%s", session_id, status)
        return session

    def complete(self, session_id: str) -> Dict[str, Any]:
        return self.update_status(session_id, "completed")

    def mark_abandoned(self, session_id: str) -> Dict[str, Any]:
        return self.update_status(session_id, "abandoned")

    def add_event(self, session_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
        if not (event or {}).get("type"):
            raise ValidationError("Le type d'événement est obligatoire")
        payload = dict(event)
        payload.setdefault("id", f"evt_{secrets.token_hex(8)}")
        payload.setdefault("timestamp", int(time.time()))
        session = self.repository.add_event(session_id, payload)
        self.invalidate(session_id)
        return session

    def get_events(self, session_id: str) -> List[Dict[str, Any]]:
        return self.cache.remember(f"session_events_{session_id}", CACHE_TTL, lambda: self.repository.get_events(session_id))

    def is_valid(self, session_id: str, now: Optional[datetime] = None) -> bool:
        """Session existante, ni expirée ni abandonnée, et expires_at non dépassé."""
        session = self.find(session_id)
        if not session:
            return False
        if session.get("status") in ("expired", "abandoned"):
            return False
        return not is_expired(session.get("expires_at"), now)
