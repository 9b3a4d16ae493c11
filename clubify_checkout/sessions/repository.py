"""
Accès à l'API distante pour la feature 'sessions' (endpoints /checkout/sessions).
"""
import logging
from typing import Any, Dict, List, Optional

from clubify_checkout.errors import NotFoundError
from clubify_checkout.infra.http_client import HttpClient, unwrap_data

logger = logging.getLogger(__name__)

BASE_PATH = "/checkout/sessions"

# module clubify_checkout.sessions.repository
class SessionRepository:
    def __init__(self, http: HttpClient):
        self.http = http

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.post(BASE_PATH, data))

    def find(self, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            return unwrap_data(self.http.get(f"{BASE_PATH}/{session_id}"))
        except NotFoundError:
            logger.info("sessions.repository.find not found session_id=%s", session_id)
            return None

    def update(self, session_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"{BASE_PATH}/{session_id}", data))

    def update_status(self, session_id: str, status: str) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"{BASE_PATH}/{session_id}/status", {"status": status}))

    def add_event(self, session_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"{BASE_PATH}/{session_id}/events", event))

    def get_events(self, session_id: str) -> List[Dict[str, Any]]:
        events = unwrap_data(self.http.get(f"{BASE_PATH}/{session_id}/events"))
        if isinstance(events, dict):
            events = events.get("events") or []
        return list(events or [])

    def update_payment_data(self, session_id: str, payment_data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"{BASE_PATH}/{session_id}/payment", payment_data))

    def get_statistics(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return unwrap_data(self.http.get(f"{BASE_PATH}/statistics", params=filters or None)) or {}
