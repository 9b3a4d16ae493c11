"""
Client HTTP de l'API Clubify Checkout (httpx).
- En-têtes par défaut (auth Bearer, tenant) issus de Settings
- Classification des échecs: TransportError (réseau), BusinessError (4xx), HttpError (5xx, 408, 429)
- Rejeu des erreurs rejouables via RetryStrategy (délai borné, sleep injectable)
- transport injectable: httpx.MockTransport en tests, aucun accès réseau
"""
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from clubify_checkout.config import Settings
from clubify_checkout.errors import (
    BusinessError,
    ConflictError,
    HttpError,
    NotFoundError,
    TransportError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: Tuple[int, ...] = (408, 429, 500, 502, 503, 504)
BACKOFF_STRATEGIES = ("exponential", "linear", "fixed")


class RetryStrategy:
    """
    Politique de rejeu.
    - attempt est 1-based (1 = premier essai échoué)
    - exponential: base × 2^(attempt-1) ; linear: base × attempt ; fixed: base
    - délai borné par max_delay_ms
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: int = 1000,
        backoff: str = "exponential",
        max_delay_ms: int = 10000,
        retryable_status_codes: Tuple[int, ...] = RETRYABLE_STATUS_CODES,
    ):
        if backoff not in BACKOFF_STRATEGIES:
            raise ValueError(f"Stratégie de backoff inconnue: {backoff}")
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay_ms = max(0, int(base_delay_ms))
        self.backoff = backoff
        self.max_delay_ms = max(0, int(max_delay_ms))
        self.retryable_status_codes = tuple(retryable_status_codes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryStrategy":
        return cls(
            max_attempts=settings.retry_attempts,
            base_delay_ms=settings.retry_delay_ms,
            backoff=settings.retry_backoff if settings.retry_backoff in BACKOFF_STRATEGIES else "exponential",
            max_delay_ms=settings.retry_max_delay_ms,
        )

    def should_retry(self, attempt: int, error: Exception) -> bool:
        if attempt >= self.max_attempts:
            return False
        if isinstance(error, TransportError):
            return True
        if isinstance(error, HttpError):
            return error.status_code in self.retryable_status_codes
        return False

    def calculate_delay(self, attempt: int) -> int:
        """Délai en millisecondes avant l'essai suivant."""
        attempt = max(1, attempt)
        if self.backoff == "exponential":
            delay = self.base_delay_ms * (2 ** (attempt - 1))
        elif self.backoff == "linear":
            delay = self.base_delay_ms * attempt
        else:
            delay = self.base_delay_ms
        return min(delay, self.max_delay_ms)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError):
        return {"raw": response.text}

def _error_message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body.get("detail") or default)
    return default

def _error_list(body: Any) -> list:
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list):
            return errors
        if isinstance(errors, dict):
            return [f"{k}: {v}" for k, v in errors.items()]
    return []


class HttpClient:
    """
    Enveloppe httpx.Client avec les conventions de l'API Clubify.
    - request() renvoie le JSON décodé (dict) ou lève une HttpError typée
    - les chemins sont relatifs à settings.base_url (ex: "/cart/abc")
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        retry: Optional[RetryStrategy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.retry = retry or RetryStrategy.from_settings(settings)
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=settings.base_url,
            headers=settings.default_headers(),
            timeout=httpx.Timeout(settings.timeout, connect=settings.connect_timeout),
            transport=transport,
        )

    def _send_once(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]],
        params: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        url = str(self._client.base_url.join(path.lstrip("/"))) if path else str(self._client.base_url)
        try:
            response = self._client.request(method, path.lstrip("/"), json=body, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise TransportError(f"Délai dépassé: {method} {path}", method=method, url=url) from e
        except httpx.TransportError as e:
            raise TransportError(f"Erreur réseau: {method} {path} ({e})", method=method, url=url) from e

        data = _decode_body(response)
        status = response.status_code
        if status < 400:
            return data if isinstance(data, dict) else {"data": data}

        message = _error_message(data, f"HTTP {status}: {method} {path}")
        kwargs = {"status_code": status, "method": method, "url": url, "response_body": data}
        if status == 404:
            raise NotFoundError(message, errors=_error_list(data), **kwargs)
        if status == 409:
            raise ConflictError(message, errors=_error_list(data), **kwargs)
        if 400 <= status < 500 and status not in (408, 429):
            raise BusinessError(message, errors=_error_list(data), **kwargs)
        raise HttpError(message, **kwargs)

    def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        method = method.upper()
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._send_once(method, path, body, headers, params)
            except HttpError as e:
                if not self.retry.should_retry(attempt, e):
                    if e.is_retryable():
                        logger.warning("clubify.http %s %s failed after %s attempt(s): %s", method, path, attempt, e.message)
                    raise
                delay_ms = self.retry.calculate_delay(attempt)
                logger.info(
                    "clubify.http retry %s %s attempt=%s status=%s delay_ms=%s",
                    method, path, attempt, e.status_code, delay_ms,
                )
                self._sleep(delay_ms / 1000.0)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("GET", path, params=params, headers=headers)

    def post(self, path: str, body: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("POST", path, body=body, headers=headers)

    def put(self, path: str, body: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("PUT", path, body=body, headers=headers)

    def patch(self, path: str, body: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("PATCH", path, body=body, headers=headers)

    def delete(self, path: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self.request("DELETE", path, headers=headers)

    def health_check(self) -> bool:
        try:
            self._send_once("GET", "/health", None, None, None)
            return True
        except HttpError as e:
            logger.warning("clubify.http health_check failed: %s", e.message)
            return False

    def close(self) -> None:
        self._client.close()


def unwrap_data(response: Dict[str, Any]) -> Any:
    """Réponses de l'API: {"data": {...}} ou l'objet directement."""
    if isinstance(response, dict) and "data" in response and set(response) <= {"data", "success", "message", "meta"}:
        return response["data"]
    return response
