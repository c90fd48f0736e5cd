import hashlib
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.core.config import get_settings

BEARER_PREFIX = "Bearer "


def get_token_serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(
        settings.secret_key,
        salt="propertyai-access",
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def create_access_token(payload: dict[str, Any]) -> str:
    return get_token_serializer().dumps(payload)


def load_access_token(token: str, max_age_seconds: int | None = None) -> dict[str, Any] | None:
    """Return the signed payload, or None when the token is forged or expired."""
    serializer = get_token_serializer()
    max_age = max_age_seconds if max_age_seconds is not None else get_settings().access_token_max_age
    try:
        payload = serializer.loads(token, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return None
    return payload if isinstance(payload, dict) else None


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    if authorization.startswith(BEARER_PREFIX):
        authorization = authorization[len(BEARER_PREFIX):]
    token = authorization.strip()
    return token or None
