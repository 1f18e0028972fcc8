from typing import Literal, Optional

from pydantic import BaseModel

from utils import auth, env, log
from utils.env import EnvVarSpec

logger = log.get_logger(__name__)

# Set to False to run without token verification (local development only)
USE_AUTH = True

#### Types ####

class HttpServerConf(BaseModel):
    host: str
    port: int
    autoreload: bool

class StripeConf(BaseModel):
    secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    currency: str = "usd"

class LedgerConf(BaseModel):
    backend: Literal["couchbase", "memory"]
    settlement_timeout_seconds: float

#### Env Vars ####

## Auth ##

AUTH_OIDC_JWK_URL = EnvVarSpec(id="AUTH_OIDC_JWK_URL", is_optional=True)
AUTH_OIDC_AUDIENCE = EnvVarSpec(id="AUTH_OIDC_AUDIENCE", is_optional=True)
AUTH_OIDC_ISSUER = EnvVarSpec(id="AUTH_OIDC_ISSUER", is_optional=True)

## Logging ##

LOG_LEVEL = EnvVarSpec(id="LOG_LEVEL", default="INFO")

## HTTP ##

HTTP_HOST = EnvVarSpec(id="HTTP_HOST", default="0.0.0.0")

HTTP_PORT = EnvVarSpec(id="HTTP_PORT", default="8000", parse=int, type=(int, ...))

HTTP_AUTORELOAD = EnvVarSpec(
    id="HTTP_AUTORELOAD",
    parse=lambda x: x.lower() == "true",
    default="false",
    type=(bool, ...),
)

HTTP_EXPOSE_ERRORS = EnvVarSpec(
    id="HTTP_EXPOSE_ERRORS",
    default="false",
    parse=lambda x: x.lower() == "true",
    type=(bool, ...),
)

## Stripe ##

STRIPE_SECRET_KEY = EnvVarSpec(id="STRIPE_SECRET_KEY", is_optional=True, is_secret=True)
STRIPE_WEBHOOK_SECRET = EnvVarSpec(id="STRIPE_WEBHOOK_SECRET", is_optional=True, is_secret=True)
STRIPE_CURRENCY = EnvVarSpec(id="STRIPE_CURRENCY", default="usd")

## Ledger ##

LEDGER_BACKEND = EnvVarSpec(
    id="LEDGER_BACKEND",
    default="couchbase",
    parse=lambda x: x.lower(),
    type=(Literal["couchbase", "memory"], ...),
)

SETTLEMENT_TIMEOUT_SECONDS = EnvVarSpec(
    id="SETTLEMENT_TIMEOUT_SECONDS",
    default="10",
    parse=float,
    type=(float, ...),
)

#### Validation ####
VALIDATED_ENV_VARS = [
    HTTP_AUTORELOAD,
    HTTP_EXPOSE_ERRORS,
    HTTP_PORT,
    LOG_LEVEL,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    STRIPE_CURRENCY,
    LEDGER_BACKEND,
    SETTLEMENT_TIMEOUT_SECONDS,
]

# Only validate auth vars if USE_AUTH is True
if USE_AUTH:
    VALIDATED_ENV_VARS.extend([
        AUTH_OIDC_JWK_URL,
        AUTH_OIDC_AUDIENCE,
        AUTH_OIDC_ISSUER,
    ])

def validate() -> bool:
    return env.validate(VALIDATED_ENV_VARS)

#### Getters ####

def get_auth_config() -> auth.AuthClientConfig:
    return auth.AuthClientConfig(
        jwk_url=env.parse(AUTH_OIDC_JWK_URL),
        audience=env.parse(AUTH_OIDC_AUDIENCE),
        issuer=env.parse(AUTH_OIDC_ISSUER),
    )

def get_http_expose_errors() -> bool:
    return env.parse(HTTP_EXPOSE_ERRORS)

def get_log_level() -> str:
    return env.parse(LOG_LEVEL)

def get_http_conf() -> HttpServerConf:
    return HttpServerConf(
        host=env.parse(HTTP_HOST),
        port=env.parse(HTTP_PORT),
        autoreload=env.parse(HTTP_AUTORELOAD),
    )

def get_stripe_conf() -> StripeConf:
    return StripeConf(
        secret_key=env.parse(STRIPE_SECRET_KEY),
        webhook_secret=env.parse(STRIPE_WEBHOOK_SECRET),
        currency=env.parse(STRIPE_CURRENCY) or "usd",
    )

def get_ledger_conf() -> LedgerConf:
    timeout = env.parse(SETTLEMENT_TIMEOUT_SECONDS)
    return LedgerConf(
        backend=env.parse(LEDGER_BACKEND),
        settlement_timeout_seconds=max(0.1, timeout),
    )
