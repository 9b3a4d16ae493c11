# clubify_checkout.config
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du SDK Clubify Checkout.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les identifiants de l'API distante (clé, tenant, organisation)
- Expose les réglages HTTP (timeouts, retry), cache Redis et webhooks
- Settings regroupe ces valeurs pour l'injection de dépendances (SDK, app FastAPI)
"""

SDK_VERSION = "1.0.0"

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_bool(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes")

# URLs par environnement (CLUBIFY_CHECKOUT_BASE_URL prend le dessus si fourni)
ENVIRONMENT_URLS = {
    "development": "http://localhost:8080/api/v1",
    "sandbox": "https://sandbox.svelve.com/api/v1",
    "staging": "https://staging.svelve.com/api/v1",
    "production": "https://checkout.svelve.com/api/v1",
}

def normalize_base_url(url: str) -> str:
    """
    Normalise une URL de base:
    - préfixe https:// si le schéma manque
    - supprime le slash final et ajoute /api/v1 si absent
    """
    url = _clean_env(url)
    if url and not url.startswith("http"):
        url = "https://" + url
    url = url.rstrip("/")
    if url and not url.endswith("/api/v1"):
        url += "/api/v1"
    return url

# Identifiants de l'API distante
CLUBIFY_CHECKOUT_API_KEY = _clean_env(os.getenv("CLUBIFY_CHECKOUT_API_KEY") or "")
CLUBIFY_CHECKOUT_TENANT_ID = _clean_env(os.getenv("CLUBIFY_CHECKOUT_TENANT_ID") or "")
CLUBIFY_CHECKOUT_ORGANIZATION_ID = _clean_env(os.getenv("CLUBIFY_CHECKOUT_ORGANIZATION_ID") or "")
CLUBIFY_CHECKOUT_ENVIRONMENT = _clean_env(os.getenv("CLUBIFY_CHECKOUT_ENVIRONMENT") or "sandbox").lower()
if CLUBIFY_CHECKOUT_ENVIRONMENT not in ENVIRONMENT_URLS:
    CLUBIFY_CHECKOUT_ENVIRONMENT = "sandbox"

CLUBIFY_CHECKOUT_BASE_URL = normalize_base_url(
    os.getenv("CLUBIFY_CHECKOUT_BASE_URL") or ENVIRONMENT_URLS[CLUBIFY_CHECKOUT_ENVIRONMENT]
)

# HTTP: timeouts en secondes, délais de retry en millisecondes
CLUBIFY_CHECKOUT_TIMEOUT = float(_clean_env(os.getenv("CLUBIFY_CHECKOUT_TIMEOUT") or "30"))
CLUBIFY_CHECKOUT_CONNECT_TIMEOUT = float(_clean_env(os.getenv("CLUBIFY_CHECKOUT_CONNECT_TIMEOUT") or "10"))
CLUBIFY_CHECKOUT_RETRY_ATTEMPTS = int(_clean_env(os.getenv("CLUBIFY_CHECKOUT_RETRY_ATTEMPTS") or "3"))
CLUBIFY_CHECKOUT_RETRY_DELAY = int(_clean_env(os.getenv("CLUBIFY_CHECKOUT_RETRY_DELAY") or "1000"))
CLUBIFY_CHECKOUT_RETRY_MAX_DELAY = int(_clean_env(os.getenv("CLUBIFY_CHECKOUT_RETRY_MAX_DELAY") or "10000"))
CLUBIFY_CHECKOUT_RETRY_BACKOFF = _clean_env(os.getenv("CLUBIFY_CHECKOUT_RETRY_BACKOFF") or "exponential")

# Webhooks: secret partagé HMAC et tolérance d'horodatage (anti-rejeu)
CLUBIFY_CHECKOUT_WEBHOOK_SECRET = _clean_env(os.getenv("CLUBIFY_CHECKOUT_WEBHOOK_SECRET") or "")
CLUBIFY_CHECKOUT_WEBHOOK_TOLERANCE = int(_clean_env(os.getenv("CLUBIFY_CHECKOUT_WEBHOOK_TOLERANCE") or "300"))

# Cache Redis
CLUBIFY_CHECKOUT_CACHE_ENABLED = _env_bool("CLUBIFY_CHECKOUT_CACHE_ENABLED", "true")
CLUBIFY_CHECKOUT_CACHE_REDIS_URL = _clean_env(os.getenv("CLUBIFY_CHECKOUT_CACHE_REDIS_URL") or "redis://127.0.0.1:6379/0")
CLUBIFY_CHECKOUT_CACHE_TTL = int(_clean_env(os.getenv("CLUBIFY_CHECKOUT_CACHE_TTL") or "3600"))
CLUBIFY_CHECKOUT_CACHE_PREFIX = _clean_env(os.getenv("CLUBIFY_CHECKOUT_CACHE_PREFIX") or "clubify_checkout")

# Règles de taxes/frais incomplètes: erreur par défaut, mise à zéro si activé
CLUBIFY_CHECKOUT_PERMISSIVE_RULES = _env_bool("CLUBIFY_CHECKOUT_PERMISSIVE_RULES")

LOG_LEVEL = _clean_env(os.getenv("LOG_LEVEL") or "info")


@dataclass(frozen=True)
class Settings:
    """
    Réglages immuables du SDK.
    - Construits depuis l'environnement via Settings.from_env()
    - Ou explicitement (tests, multi-tenant) sans toucher aux variables d'environnement
    """
    api_key: str = ""
    tenant_id: str = ""
    organization_id: str = ""
    environment: str = "sandbox"
    base_url: str = ENVIRONMENT_URLS["sandbox"]
    timeout: float = 30.0
    connect_timeout: float = 10.0
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    retry_max_delay_ms: int = 10000
    retry_backoff: str = "exponential"
    webhook_secret: str = ""
    webhook_tolerance: int = 300
    cache_enabled: bool = True
    cache_redis_url: str = "redis://127.0.0.1:6379/0"
    cache_ttl: int = 3600
    cache_prefix: str = "clubify_checkout"
    permissive_rules: bool = False
    extra_headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_key=CLUBIFY_CHECKOUT_API_KEY,
            tenant_id=CLUBIFY_CHECKOUT_TENANT_ID,
            organization_id=CLUBIFY_CHECKOUT_ORGANIZATION_ID,
            environment=CLUBIFY_CHECKOUT_ENVIRONMENT,
            base_url=CLUBIFY_CHECKOUT_BASE_URL,
            timeout=CLUBIFY_CHECKOUT_TIMEOUT,
            connect_timeout=CLUBIFY_CHECKOUT_CONNECT_TIMEOUT,
            retry_attempts=CLUBIFY_CHECKOUT_RETRY_ATTEMPTS,
            retry_delay_ms=CLUBIFY_CHECKOUT_RETRY_DELAY,
            retry_max_delay_ms=CLUBIFY_CHECKOUT_RETRY_MAX_DELAY,
            retry_backoff=CLUBIFY_CHECKOUT_RETRY_BACKOFF,
            webhook_secret=CLUBIFY_CHECKOUT_WEBHOOK_SECRET,
            webhook_tolerance=CLUBIFY_CHECKOUT_WEBHOOK_TOLERANCE,
            cache_enabled=CLUBIFY_CHECKOUT_CACHE_ENABLED,
            cache_redis_url=CLUBIFY_CHECKOUT_CACHE_REDIS_URL,
            cache_ttl=CLUBIFY_CHECKOUT_CACHE_TTL,
            cache_prefix=CLUBIFY_CHECKOUT_CACHE_PREFIX,
            permissive_rules=CLUBIFY_CHECKOUT_PERMISSIVE_RULES,
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def default_headers(self, tenant_id: Optional[str] = None) -> Dict[str, str]:
        """
        En-têtes envoyés à chaque appel de l'API distante.
        - Authorization: Bearer <api_key> si une clé est configurée
        - X-Tenant-Id / X-Organization-Id pour le scoping multi-tenant
        """
        headers = {
            "User-Agent": f"ClubifyCheckoutSDK-Python/{SDK_VERSION}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-SDK-Version": SDK_VERSION,
            "X-SDK-Language": "python",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        tenant = tenant_id or self.tenant_id
        if tenant:
            headers["X-Tenant-Id"] = tenant
        if self.organization_id:
            headers["X-Organization-Id"] = self.organization_id
        headers.update(self.extra_headers)
        return headers
