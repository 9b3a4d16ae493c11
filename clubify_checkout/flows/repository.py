"""
Accès à l'API distante pour la feature 'flows' (endpoints /navigation).
"""
import logging
from typing import Any, Dict, List, Optional

from clubify_checkout.errors import NotFoundError
from clubify_checkout.infra.http_client import HttpClient, unwrap_data

logger = logging.getLogger(__name__)

# module clubify_checkout.flows.repository
class FlowRepository:
    def __init__(self, http: HttpClient):
        self.http = http

    def create(self, offer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        # Réponse: { "success": bool, "flowId": str, "message": str }
        return self.http.post(f"/navigation/flow/{offer_id}", data)

    def get(self, offer_id: str, query: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        try:
            return unwrap_data(self.http.get(f"/navigation/flow/{offer_id}", params=query or None))
        except NotFoundError:
            logger.info("flows.repository.get not found offer_id=%s", offer_id)
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return _as_list(unwrap_data(self.http.get("/navigation/flows", params=filters or None)))

    def list_active(self) -> List[Dict[str, Any]]:
        return _as_list(unwrap_data(self.http.get("/navigation/flows/active")))

    def update(self, flow_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"/navigation/flow/{flow_id}", data))

    def delete(self, flow_id: str) -> bool:
        try:
            self.http.delete(f"/navigation/flow/{flow_id}")
            return True
        except NotFoundError:
            return False

    def publish(self, flow_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"/navigation/flow/{flow_id}/publish"))

    def unpublish(self, flow_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"/navigation/flow/{flow_id}/unpublish"))

    def clone(self, flow_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"/navigation/flow/{flow_id}/clone", data))

    def get_details(self, flow_id: str) -> Optional[Dict[str, Any]]:
        try:
            return unwrap_data(self.http.get(f"/navigation/flow/{flow_id}/details"))
        except NotFoundError:
            return None

    def get_analytics(self, flow_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.get(f"/navigation/analytics/{flow_id}"))


def _as_list(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("flows", "items", "results"):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []
