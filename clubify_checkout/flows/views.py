import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field

from clubify_checkout.app_setup.dependencies import get_sdk

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/flows", tags=["Flows API"])


class NavigateRequest(BaseModel):
    flow: Dict[str, Any]
    current_step: str = Field(min_length=1)


# module clubify_checkout.flows.views
@router.post("/steps/evaluate")
def evaluate_step(payload: Dict[str, Any] = Body(...), sdk=Depends(get_sdk)):
    """
    Évalue une étape de checkout à partir de ses données saisies.
    - Sortie: progress, validation {valid, errors, warnings}, missing_fields, conditional, can_be_skipped
    - Erreurs: 422 si l'étape est mal formée (type inconnu, opérateur ou règle inconnus)
    """
    return sdk.flows.evaluate_step(payload)

@router.post("/navigate")
def navigate(body: NavigateRequest, sdk=Depends(get_sdk)):
    """
    Calcule l'étape suivante d'un flow.
    - Entrée JSON: { "flow": {...configuration...}, "current_step": "<nom>" }
    - Sortie: next_step (None en fin de flow), finished, flow_progress
    """
    result = sdk.flows.navigate(body.flow, body.current_step)
    logger.info("flows.navigate flow_id=%s from=%s to=%s", result["flow_id"], body.current_step, result["next_step"])
    return result

@router.post("/analytics/report")
def analytics_report(payload: Dict[str, Any] = Body(...), sdk=Depends(get_sdk)):
    """
    Rapport de tableau de bord à partir de métriques pré-agrégées.
    - Sortie: summary, performance (grade A-F), trends, issues, recommendations, roi, confidence
    """
    return sdk.flows.analytics_report(payload)
