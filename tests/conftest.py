import json
import os
from typing import Any, Dict, Generator, List, Optional, Tuple

import fakeredis
import httpx
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("USE_FAKE_REDIS_FOR_TESTS", "1")

from clubify_checkout.app_setup.factory import create_app
from clubify_checkout.config import Settings
from clubify_checkout.infra.cache import CacheManager
from clubify_checkout.infra.http_client import HttpClient
from clubify_checkout.sdk import ClubifyCheckoutSDK

API_PREFIX = "/api/v1"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)
        elif "/tests/functional/" in nodeid or nodeid.startswith("tests/functional/"):
            item.add_marker(pytest.mark.functional)


class FakeApi:
    """
    API Clubify simulée pour httpx.MockTransport.
    - add(method, path, status, json): réponses rejouées dans l'ordre (la dernière est répétée)
    - calls: (méthode, chemin, corps JSON) de chaque requête reçue
    - route inconnue: 404 {"message": "Not found"}
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Tuple[int, Any]]] = {}
        self.calls: List[Tuple[str, str, Optional[Any]]] = []
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, json: Any = None) -> "FakeApi":
        self.routes.setdefault((method.upper(), API_PREFIX + path), []).append((status, json))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.path, body))
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Not found"})
        status, payload = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status, json=payload)

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.calls if m == method.upper() and p == API_PREFIX + path)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_key="test-key",
        tenant_id="tenant-1",
        organization_id="org-1",
        environment="sandbox",
        base_url="https://api.clubify.test/api/v1",
        retry_attempts=3,
        retry_delay_ms=10,
        retry_max_delay_ms=100,
        webhook_secret="whsec_test",
        cache_prefix="test",
        cache_ttl=60,
    )

@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)

@pytest.fixture
def cache(fake_redis) -> CacheManager:
    return CacheManager(fake_redis, prefix="test", default_ttl=60)

@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()

@pytest.fixture
def sleeps() -> List[float]:
    return []

@pytest.fixture
def http_client(settings, fake_api, sleeps) -> Generator[HttpClient, None, None]:
    client = HttpClient(settings, transport=httpx.MockTransport(fake_api.handler), sleep=sleeps.append)
    yield client
    client.close()

@pytest.fixture
def sdk(settings, http_client, cache) -> ClubifyCheckoutSDK:
    return ClubifyCheckoutSDK(settings, http_client=http_client, cache=cache)

@pytest.fixture()
def app(sdk):
    fastapi_app = create_app()
    fastapi_app.state.sdk = sdk
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
