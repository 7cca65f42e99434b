from __future__ import annotations

import httpx
import structlog

from app.chain.errors import MetadataFetchError
from app.chain.types import TokenMetadata
from app.core.config import get_settings

logger = structlog.get_logger(__name__)

IPFS_SCHEME = "ipfs://"


def resolve_metadata_uri(uri: str, *, gateway_url: str, token_id: int | None = None) -> str:
    resolved = uri.strip()
    # ERC-1155 clients substitute {id} with the zero-padded lowercase hex token id.
    if token_id is not None and "{id}" in resolved:
        resolved = resolved.replace("{id}", f"{token_id:064x}")
    if resolved.startswith(IPFS_SCHEME):
        path = resolved[len(IPFS_SCHEME):]
        if path.startswith("ipfs/"):
            path = path[len("ipfs/"):]
        resolved = f"{gateway_url.rstrip('/')}/{path}"
    return resolved


def _metadata_from_payload(payload: object, *, uri: str) -> TokenMetadata:
    if not isinstance(payload, dict):
        raise MetadataFetchError(context={"uri": uri, "reason": "not_an_object"})
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise MetadataFetchError(context={"uri": uri, "reason": "missing_name"})
    description = payload.get("description")
    image = payload.get("image")
    return TokenMetadata(
        name=name.strip(),
        description=description if isinstance(description, str) else None,
        image=image if isinstance(image, str) else None,
    )


async def fetch_token_metadata(uri: str, *, token_id: int | None = None) -> TokenMetadata:
    settings = get_settings()
    url = resolve_metadata_uri(uri, gateway_url=settings.ipfs_gateway_url, token_id=token_id)
    try:
        async with httpx.AsyncClient(timeout=settings.metadata_fetch_timeout_seconds) as client:
            response = await client.get(url)
            response.raise_for_status()
            payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("token_metadata_fetch_failed", uri=url, error_type=type(exc).__name__)
        raise MetadataFetchError(context={"uri": url}) from exc
    return _metadata_from_payload(payload, uri=url)
