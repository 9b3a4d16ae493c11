"""
Signature HMAC des webhooks.
- Format envoyé: "sha256=<hex>" (ou hex nu, interprété comme sha256)
- HMAC calculé sur le corps brut, comparaison en temps constant
"""
import hashlib
import hmac
from typing import Union

from clubify_checkout.errors import WebhookError

ALGORITHMS = {
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
}

def _to_bytes(value: Union[bytes, str]) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")

def compute_hmac(body: Union[bytes, str], secret: str, algorithm: str = "sha256") -> str:
    digest = ALGORITHMS.get(algorithm)
    if digest is None:
        raise WebhookError(f"Algorithme de signature non supporté: {algorithm}")
    if not secret:
        raise WebhookError("Secret de webhook non configuré")
    return hmac.new(_to_bytes(secret), _to_bytes(body), digest).hexdigest()

def sign_payload(body: Union[bytes, str], secret: str, algorithm: str = "sha256") -> str:
    return f"{algorithm}={compute_hmac(body, secret, algorithm)}"

def verify_signature(body: Union[bytes, str], signature: str, secret: str) -> bool:
    """
    Vérifie une signature reçue.
    - "algo=hex" avec algo parmi sha256/sha384/sha512, ou hex nu (sha256)
    - signature absente, non ASCII ou algorithme inconnu: False
    """
    if not signature:
        return False
    algorithm, sep, provided = signature.strip().partition("=")
    if not sep:
        algorithm, provided = "sha256", algorithm
    algorithm = algorithm.lower()
    if algorithm not in ALGORITHMS:
        return False
    provided = provided.strip().lower()
    if not provided.isascii():
        return False
    expected = compute_hmac(body, secret, algorithm)
    return hmac.compare_digest(expected.encode("ascii"), provided.encode("ascii"))
