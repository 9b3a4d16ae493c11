"""
Cas d'usage 'flows': configuration des flows de navigation et leur analytics.
- Appels distants via FlowRepository (/navigation/...), lectures mises en cache
- Évaluation locale d'une étape et navigation dans un flow (sans réseau)
"""
import logging
from typing import Any, Dict, List, Optional

from clubify_checkout.errors import ValidationError
from clubify_checkout.infra.cache import CacheManager
from clubify_checkout.utils.validators import parse_model

from .analytics import FlowAnalyticsData
from .models import FlowConfigData, FlowStepData
from .repository import FlowRepository

logger = logging.getLogger(__name__)

CACHE_TTL = 3600
CREATABLE_FLOW_TYPES = ("standard", "express", "custom")


def validate_flow_payload(data: Dict[str, Any]) -> None:
    """
    Contrôle minimal avant création distante.
    - name obligatoire
    - type (optionnel) parmi standard, express, custom
    """
    if not isinstance(data, dict):
        raise ValidationError("Données de flow invalides: objet attendu")
    if not str(data.get("name") or "").strip():
        raise ValidationError("Le champ 'name' est obligatoire pour créer un flow")
    flow_type = data.get("type")
    if flow_type is not None and flow_type not in CREATABLE_FLOW_TYPES:
        raise ValidationError(
            f"Type de flow invalide: {flow_type}. Types autorisés: {', '.join(CREATABLE_FLOW_TYPES)}"
        )


class FlowService:
    def __init__(self, repository: FlowRepository, cache: CacheManager):
        self.repository = repository
        self.cache = cache

    def invalidate(self, flow_id: Optional[str] = None, offer_id: Optional[str] = None) -> None:
        keys = []
        if flow_id:
            keys += [f"flow:{flow_id}", f"flow_details:{flow_id}"]
        if offer_id:
            keys.append(f"flow_offer:{offer_id}")
        self.cache.delete(*keys)

    def create(self, offer_id: str, flow_data: Dict[str, Any]) -> Dict[str, Any]:
        validate_flow_payload(flow_data)
        result = self.repository.create(offer_id, flow_data)
        flow_id = result.get("flowId") or result.get("_id") or result.get("id")
        flow = dict(flow_data)
        flow.update({
            "id": flow_id,
            "offer_id": offer_id,
            "success": bool(result.get("success", flow_id is not None)),
            "message": result.get("message") or "",
        })
        self.invalidate(offer_id=offer_id)
        if flow_id:
            self.cache.set(f"flow:{flow_id}", flow, CACHE_TTL)
        logger.info("flows.create flow_id=%s name=%s offer_id=%s", flow_id, flow.get("name"), offer_id)
        return flow

    def get(self, offer_id: str, query: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        if query:
            return self.repository.get(offer_id, query)
        return self.cache.remember(f"flow_offer:{offer_id}", CACHE_TTL, lambda: self.repository.get(offer_id))

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self.repository.list(filters)

    def list_active(self) -> List[Dict[str, Any]]:
        return self.repository.list_active()

    def update(self, flow_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        flow = self.repository.update(flow_id, data)
        self.invalidate(flow_id, (flow or {}).get("offer_id"))
        logger.info("flows.update flow_id=%s", flow_id)
        return flow

    def delete(self, flow_id: str) -> bool:
        deleted = self.repository.delete(flow_id)
        self.invalidate(flow_id)
        logger.info("flows.delete flow_id=%s deleted=%s", flow_id, deleted)
        return deleted

    def publish(self, flow_id: str) -> Dict[str, Any]:
        flow = self.repository.publish(flow_id)
        self.invalidate(flow_id, (flow or {}).get("offer_id"))
        return flow

    def unpublish(self, flow_id: str) -> Dict[str, Any]:
        flow = self.repository.unpublish(flow_id)
        self.invalidate(flow_id, (flow or {}).get("offer_id"))
        return flow

    def activate(self, flow_id: str) -> Dict[str, Any]:
        return self.publish(flow_id)

    def deactivate(self, flow_id: str) -> Dict[str, Any]:
        return self.unpublish(flow_id)

    def clone(self, flow_id: str, clone_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.repository.clone(flow_id, dict(clone_data or {}))

    def get_details(self, flow_id: str) -> Optional[Dict[str, Any]]:
        return self.cache.remember(f"flow_details:{flow_id}", CACHE_TTL, lambda: self.repository.get_details(flow_id))

    def get_analytics(self, flow_id: str) -> FlowAnalyticsData:
        data = self.repository.get_analytics(flow_id)
        if isinstance(data, dict):
            data.setdefault("flow_id", flow_id)
        return FlowAnalyticsData.from_api(data)

    # --- Calcul local ---

    def evaluate_step(self, step_payload: Dict[str, Any]) -> Dict[str, Any]:
        step = parse_model(FlowStepData, step_payload)
        validation = step.validate_data()
        outcome = step.evaluate_conditional_logic()
        return {
            "name": step.name,
            "progress": step.progress,
            "validation": validation.model_dump(),
            "missing_fields": step.missing_fields(),
            "conditional": outcome.model_dump(),
            "can_be_skipped": step.can_be_skipped(),
        }

    def navigate(self, flow_payload: Dict[str, Any], current_step: str) -> Dict[str, Any]:
        flow = FlowConfigData.from_dict(flow_payload)
        nxt = flow.next_step(current_step)
        return {
            "flow_id": flow.id,
            "current_step": current_step,
            "next_step": nxt.name if nxt else None,
            "finished": nxt is None,
            "flow_progress": flow.progress(),
        }

    def analytics_report(self, analytics_payload: Dict[str, Any]) -> Dict[str, Any]:
        return FlowAnalyticsData.from_api(analytics_payload).export_for_dashboard()
