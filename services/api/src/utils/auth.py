"""OIDC access-token verification.

Signing keys come from the provider's JWKS endpoint, fetched once at startup
(``AuthClient.load_keys``) and refetched when a token names an unknown key.
"""

from typing import Any, Dict, List, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from clients import http
from utils import log

logger = log.get_logger(__name__)


class AuthClientConfig(BaseModel):
    jwk_url: Optional[str] = None
    audience: Optional[str] = None
    issuer: Optional[str] = None
    algorithms: List[str] = ["RS256"]


class AuthClient:
    def __init__(self, config: AuthClientConfig, jwks: Optional[Dict[str, Any]] = None) -> None:
        self.config = config
        self._jwks: Dict[str, Any] = jwks or {"keys": []}

    async def load_keys(self) -> None:
        if not self.config.jwk_url:
            logger.warning("AUTH_OIDC_JWK_URL not set; no signing keys loaded")
            return
        jwks = await http.get_json(self.config.jwk_url)
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise ValueError(f"Unexpected JWKS document from {self.config.jwk_url}")
        self._jwks = jwks
        logger.info(f"Loaded {len(jwks['keys'])} signing keys from {self.config.jwk_url}")

    def _has_key(self, token: str) -> bool:
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except JWTError:
            return False
        if kid is None:
            return bool(self._jwks["keys"])
        return any(key.get("kid") == kid for key in self._jwks["keys"])

    def decode_jwt(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the verified claims, or ``None`` when the token is not acceptable."""
        options = {"verify_aud": self.config.audience is not None}
        try:
            return jwt.decode(
                token,
                self._jwks,
                algorithms=self.config.algorithms,
                audience=self.config.audience,
                issuer=self.config.issuer,
                options=options,
            )
        except JWTError as e:
            logger.info(f"Rejected access token: {e}")
            return None

    async def verify(self, token: str) -> Optional[Dict[str, Any]]:
        if not self._has_key(token) and self.config.jwk_url:
            await self.load_keys()
        return self.decode_jwt(token)
