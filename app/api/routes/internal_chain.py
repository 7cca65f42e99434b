from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Path, Request
from pydantic import BaseModel, Field

from app.api.routes.internal_errors import as_http_exception
from app.chain.errors import ChainError
from app.chain.listener import ChainListenerRegistry
from app.core.config import get_settings
from app.services.internal_auth import assert_internal_access

router = APIRouter(tags=["internal", "chain"])
logger = structlog.get_logger(__name__)


class ChainListenerResetResponse(BaseModel):
    collection_id: int
    installed: bool


class ChainListenersResponse(BaseModel):
    collection_ids: list[int]


class ChainListenersRefreshResponse(BaseModel):
    installed: int = Field(ge=0)
    skipped: int = Field(ge=0)
    failed: int = Field(ge=0)


def _assert_internal_access(request: Request) -> None:
    assert_internal_access(request, settings=get_settings(), scope="chain")


def _get_registry(request: Request) -> ChainListenerRegistry:
    registry = getattr(request.app.state, "chain_listeners", None)
    if registry is None:
        raise HTTPException(status_code=503, detail={"code": "E_CHAIN_LISTENERS_DISABLED"})
    return registry


@router.get("/internal/chain/listeners", response_model=ChainListenersResponse)
async def list_chain_listeners(request: Request) -> ChainListenersResponse:
    _assert_internal_access(request)
    registry = _get_registry(request)
    return ChainListenersResponse(collection_ids=registry.collection_ids)


@router.post(
    "/internal/chain/listeners/{collection_id}/reset",
    response_model=ChainListenerResetResponse,
)
async def reset_chain_listener(
    request: Request,
    collection_id: int = Path(gt=0),
) -> ChainListenerResetResponse:
    _assert_internal_access(request)
    registry = _get_registry(request)

    try:
        installed = await registry.reset(collection_id)
    except ChainError as exc:
        logger.warning("chain_listener_reset_failed", collection_id=collection_id, error_code=exc.code)
        raise as_http_exception(exc) from exc
    logger.info("chain_listener_reset_requested", collection_id=collection_id, installed=installed)
    return ChainListenerResetResponse(collection_id=collection_id, installed=installed)


@router.post("/internal/chain/listeners/reset", response_model=ChainListenersRefreshResponse)
async def reset_all_chain_listeners(request: Request) -> ChainListenersRefreshResponse:
    _assert_internal_access(request)
    registry = _get_registry(request)

    summary = await registry.reset_all()
    return ChainListenersRefreshResponse(**summary)
