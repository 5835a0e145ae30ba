import time
from typing import Protocol

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from fastapi import Request
from jwcrypto import jwe, jwk
from jwcrypto.common import JWException, base64url_encode, json_decode

from copi.utils.config import get_config, get_secret
from copi.utils.logger import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "bearer "

# NextAuth v4 default session token: compact JWE, alg "dir" + enc "A256GCM",
# key = HKDF-SHA256(NEXTAUTH_SECRET, salt="", info=ENCRYPTION_KEY_INFO, 32 bytes).
ENCRYPTION_KEY_INFO = b"NextAuth.js Generated Encryption Key"
SESSION_TOKEN_ALGS = ["dir", "A256GCM"]


def derive_encryption_key(secret: str) -> jwk.JWK:
    """Symmetric key the login service encrypts session tokens with."""
    derived = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"",
        info=ENCRYPTION_KEY_INFO,
    ).derive(secret.encode("utf-8"))
    return jwk.JWK(kty="oct", k=base64url_encode(derived))


class IdentityResolver(Protocol):
    """Resolves the authenticated caller's user id for a request, or None."""

    async def resolve(self, request: Request) -> str | None: ...


class SessionTokenResolver:
    """Reads the user id from the encrypted session token issued by the login service.

    The token is taken from the first configured session cookie that is present
    (including cookies split into ``<name>.0``, ``<name>.1``... chunks), falling back
    to an ``Authorization: Bearer`` header. Tokens that fail decryption or expiry
    checks, or carry no user id claim, resolve to None.
    """

    def __init__(
        self,
        secret: str,
        *,
        cookie_names: list[str],
        user_id_claim: str = "userId",
        clock_tolerance: int = 15,
    ) -> None:
        if not secret:
            raise ValueError("SessionTokenResolver requires a session secret")
        self._key = derive_encryption_key(secret)
        self._cookie_names = cookie_names
        self._user_id_claim = user_id_claim
        self._clock_tolerance = clock_tolerance

    @classmethod
    def from_config(cls) -> "SessionTokenResolver":
        return cls(
            get_secret("session_secret"),
            cookie_names=get_config("session.cookie_names", coerce=list),
            user_id_claim=get_config("session.user_id_claim"),
            clock_tolerance=get_config("session.clock_tolerance", coerce=int),
        )

    def _extract_token(self, request: Request) -> str | None:
        for name in self._cookie_names:
            token = request.cookies.get(name)
            if token:
                return token

            chunks = []
            while chunk := request.cookies.get(f"{name}.{len(chunks)}"):
                chunks.append(chunk)
            if chunks:
                return "".join(chunks)

        authorization = request.headers.get("authorization", "")
        if authorization.lower().startswith(BEARER_PREFIX):
            return authorization[len(BEARER_PREFIX):].strip() or None
        return None

    def _decrypt(self, token: str) -> dict | None:
        try:
            envelope = jwe.JWE(algs=SESSION_TOKEN_ALGS)
            envelope.deserialize(token, key=self._key)
            claims = json_decode(envelope.payload)
        except (JWException, ValueError) as e:
            logger.warning("Rejected undecryptable session token: %s", e)
            return None

        if not isinstance(claims, dict):
            logger.warning("Rejected session token with non-object payload")
            return None
        return claims

    async def resolve(self, request: Request) -> str | None:
        token = self._extract_token(request)
        if token is None:
            return None

        claims = self._decrypt(token)
        if claims is None:
            return None

        expires_at = claims.get("exp")
        if isinstance(expires_at, (int, float)) and expires_at + self._clock_tolerance < time.time():
            logger.info("Rejected expired session token")
            return None

        user_id = claims.get(self._user_id_claim)
        if not user_id:
            return None
        return str(user_id)
