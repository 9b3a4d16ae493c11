"""
Dépendances FastAPI partagées par les routers.
- get_sdk: instance ClubifyCheckoutSDK construite par le lifespan (app.state.sdk)
"""
from fastapi import HTTPException, Request

def get_sdk(request: Request):
    sdk = getattr(request.app.state, "sdk", None)
    if sdk is None:
        raise HTTPException(status_code=503, detail="SDK non initialisé")
    return sdk
