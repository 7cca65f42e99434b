from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import structlog
from web3 import AsyncHTTPProvider, AsyncWeb3

from app.chain.abi import ERC721_ABI, ERC1155_ABI
from app.chain.errors import ChainProviderError, UnsupportedChainError
from app.chain.types import ChainType, CollectionRef, Standard, TransferEvent

logger = structlog.get_logger(__name__)

TransferHandler = Callable[[TransferEvent], Awaitable[object]]

EVENT_STREAM_CHAIN_TYPES = frozenset({ChainType.ETHEREUM.value, ChainType.FILECOIN.value})


def parse_rpc_urls(raw: str) -> dict[str, str]:
    """Parses ``{"ethereum:1": "https://..."}`` JSON into a lookup map."""
    if not raw or not raw.strip():
        return {}
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError("CHAIN_RPC_URLS must be a JSON object")
    return {str(key).strip().lower(): str(value) for key, value in parsed.items()}


def rpc_key(collection: CollectionRef) -> str:
    return f"{collection.chain_type}:{collection.chain_id}".lower()


class ChainProvider(Protocol):
    def supports_event_stream(self, chain_type: str) -> bool: ...

    async def get_balance_of(self, address: str, collection: CollectionRef, token_id: int) -> int: ...

    async def get_token_uri(self, collection: CollectionRef, token_id: int) -> str: ...

    async def subscribe_transfers(self, collection: CollectionRef, handler: TransferHandler) -> Any: ...

    async def unsubscribe(self, subscription: Any) -> None: ...

    async def close(self) -> None: ...


class PollingSubscription:
    def __init__(self, *, collection_id: int, task: asyncio.Task[None]) -> None:
        self.collection_id = collection_id
        self.task = task

    async def cancel(self) -> None:
        self.task.cancel()
        # A handler tearing down its own listener cannot wait on itself.
        if self.task is asyncio.current_task():
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self.task


class Web3ChainProvider:
    """Reads balances and token URIs over JSON-RPC and polls transfer logs."""

    def __init__(
        self,
        *,
        rpc_urls: dict[str, str],
        default_rpc_url: str = "",
        poll_interval_seconds: float = 5.0,
    ) -> None:
        self._rpc_urls = rpc_urls
        self._default_rpc_url = default_rpc_url
        self._poll_interval_seconds = poll_interval_seconds
        self._clients: dict[str, AsyncWeb3] = {}

    @classmethod
    def from_settings(cls, settings: Any) -> Web3ChainProvider:
        return cls(
            rpc_urls=parse_rpc_urls(settings.chain_rpc_urls),
            default_rpc_url=settings.default_chain_rpc_url,
            poll_interval_seconds=settings.chain_poll_interval_seconds,
        )

    def supports_event_stream(self, chain_type: str) -> bool:
        return chain_type in EVENT_STREAM_CHAIN_TYPES

    def _client(self, collection: CollectionRef) -> AsyncWeb3:
        key = rpc_key(collection)
        client = self._clients.get(key)
        if client is not None:
            return client

        url = self._rpc_urls.get(key) or self._default_rpc_url
        if not url:
            raise UnsupportedChainError(context={"chain": key})
        client = AsyncWeb3(AsyncHTTPProvider(url))
        self._clients[key] = client
        return client

    def _contract(self, collection: CollectionRef):
        abi = ERC1155_ABI if collection.standard == Standard.ERC1155.value else ERC721_ABI
        return self._client(collection).eth.contract(
            address=AsyncWeb3.to_checksum_address(collection.contract_address),
            abi=abi,
        )

    async def get_balance_of(self, address: str, collection: CollectionRef, token_id: int) -> int:
        contract = self._contract(collection)
        holder = AsyncWeb3.to_checksum_address(address)
        try:
            if collection.standard == Standard.ERC1155.value:
                return int(await contract.functions.balanceOf(holder, token_id).call())
            owner = await contract.functions.ownerOf(token_id).call()
        except Exception as exc:
            raise ChainProviderError(
                context={"operation": "balance_of", "collection_id": collection.id, "token_id": token_id}
            ) from exc
        return 1 if str(owner).lower() == holder.lower() else 0

    async def get_token_uri(self, collection: CollectionRef, token_id: int) -> str:
        contract = self._contract(collection)
        try:
            if collection.standard == Standard.ERC1155.value:
                return str(await contract.functions.uri(token_id).call())
            return str(await contract.functions.tokenURI(token_id).call())
        except Exception as exc:
            raise ChainProviderError(
                context={"operation": "token_uri", "collection_id": collection.id, "token_id": token_id}
            ) from exc

    async def subscribe_transfers(
        self,
        collection: CollectionRef,
        handler: TransferHandler,
    ) -> PollingSubscription:
        client = self._client(collection)
        try:
            start_block = await client.eth.block_number
        except Exception as exc:
            raise ChainProviderError(
                context={"operation": "block_number", "collection_id": collection.id}
            ) from exc

        task = asyncio.create_task(
            self._poll_transfers(collection, handler, start_block + 1),
            name=f"chain-listener-{collection.id}",
        )
        return PollingSubscription(collection_id=collection.id, task=task)

    async def unsubscribe(self, subscription: PollingSubscription) -> None:
        await subscription.cancel()

    async def close(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            with contextlib.suppress(Exception):
                await client.provider.disconnect()

    async def _poll_transfers(
        self,
        collection: CollectionRef,
        handler: TransferHandler,
        next_block: int,
    ) -> None:
        client = self._client(collection)
        contract = self._contract(collection)
        if collection.standard == Standard.ERC1155.value:
            event = contract.events.TransferSingle()
        else:
            event = contract.events.Transfer()

        while True:
            await asyncio.sleep(self._poll_interval_seconds)
            try:
                latest_block = await client.eth.block_number
                if latest_block < next_block:
                    continue
                logs = await event.get_logs(from_block=next_block, to_block=latest_block)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "chain_listener_poll_failed",
                    collection_id=collection.id,
                    from_block=next_block,
                )
                continue

            for log in logs:
                await handler(self._transfer_from_log(collection, log["args"]))
            next_block = latest_block + 1

    @staticmethod
    def _transfer_from_log(collection: CollectionRef, args: Any) -> TransferEvent:
        if collection.standard == Standard.ERC1155.value:
            return TransferEvent(
                operator=str(args["operator"]),
                from_address=str(args["from"]),
                to_address=str(args["to"]),
                token_id=int(args["id"]),
                amount=int(args["value"]),
                collection_id=collection.id,
            )
        return TransferEvent(
            operator=str(args["from"]),
            from_address=str(args["from"]),
            to_address=str(args["to"]),
            token_id=int(args["tokenId"]),
            amount=1,
            collection_id=collection.id,
        )
