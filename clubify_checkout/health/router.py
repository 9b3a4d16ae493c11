from fastapi import APIRouter, Depends

from clubify_checkout.app_setup.dependencies import get_sdk

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/clubify")
def health_clubify(sdk=Depends(get_sdk)):
    """État de l'API distante et du cache (ne lève jamais)."""
    return sdk.health_check()
