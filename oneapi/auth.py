from fastapi import Depends, Header

from oneapi.deps import get_config_store
from oneapi.errors import UnauthorizedError
from oneapi.schemas import ApiToken
from oneapi.storage import ConfigStore


def extract_api_key(authorization: str | None, x_api_key: str | None) -> str | None:
    """
    Pull the caller credential from `Authorization: Bearer <token>` or,
    when that header is absent or empty, from `x-api-key: <token>`.
    """
    if authorization:
        token = authorization.strip()
        if token[:7].lower() == "bearer ":
            token = token[7:].strip()
        if token:
            return token
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()
    return None


async def authenticate(
    store: ConfigStore, authorization: str | None, x_api_key: str | None
) -> ApiToken:
    api_key = extract_api_key(authorization, x_api_key)
    if not api_key:
        raise UnauthorizedError("Authorization header or x-api-key not found")

    token = await store.get_token(api_key)
    if token is None:
        raise UnauthorizedError("Invalid API key")
    return token


async def require_api_token(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    store: ConfigStore = Depends(get_config_store),
) -> ApiToken:
    """FastAPI dependency resolving the caller's token; quota is checked by the proxy."""
    return await authenticate(store, authorization, x_api_key)


__all__ = ["authenticate", "extract_api_key", "require_api_token"]
