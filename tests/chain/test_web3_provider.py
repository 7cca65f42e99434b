from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from app.chain.errors import UnsupportedChainError
from app.chain.providers import PollingSubscription, Web3ChainProvider, parse_rpc_urls
from app.chain.types import CollectionRef, TransferEvent


def _collection(**overrides: object) -> CollectionRef:
    values: dict[str, object] = {
        "id": 3,
        "chain_type": "ethereum",
        "chain_id": 1,
        "contract_address": "0x3333333333333333333333333333333333333333",
        "standard": "erc1155",
    }
    values.update(overrides)
    return CollectionRef(**values)


def test_parse_rpc_urls() -> None:
    assert parse_rpc_urls("") == {}
    assert parse_rpc_urls('{"Ethereum:1": "https://rpc.example"}') == {"ethereum:1": "https://rpc.example"}
    with pytest.raises(ValueError):
        parse_rpc_urls('["https://rpc.example"]')


def test_from_settings_and_event_stream_support() -> None:
    provider = Web3ChainProvider.from_settings(
        SimpleNamespace(
            chain_rpc_urls='{"filecoin:314": "https://filecoin.example"}',
            default_chain_rpc_url="",
            chain_poll_interval_seconds=1.5,
        )
    )

    assert provider.supports_event_stream("ethereum") is True
    assert provider.supports_event_stream("filecoin") is True
    assert provider.supports_event_stream("fuel") is False
    with pytest.raises(UnsupportedChainError):
        provider._client(_collection())


def test_clients_are_cached_per_chain() -> None:
    provider = Web3ChainProvider(rpc_urls={}, default_rpc_url="https://rpc.example")

    first = provider._client(_collection())
    assert provider._client(_collection(id=4)) is first
    assert provider._client(_collection(chain_id=5)) is not first


def test_transfer_events_from_decoded_logs() -> None:
    fungible = Web3ChainProvider._transfer_from_log(
        _collection(),
        {"operator": "0xop", "from": "0xa", "to": "0xb", "id": 5, "value": 3},
    )
    single = Web3ChainProvider._transfer_from_log(
        _collection(standard="erc721"),
        {"from": "0xa", "to": "0xb", "tokenId": 9},
    )

    assert fungible == TransferEvent(
        operator="0xop", from_address="0xa", to_address="0xb", token_id=5, amount=3, collection_id=3
    )
    assert single == TransferEvent(
        operator="0xa", from_address="0xa", to_address="0xb", token_id=9, amount=1, collection_id=3
    )


async def test_polling_subscription_cancel_stops_task() -> None:
    task = asyncio.create_task(asyncio.sleep(3600))
    subscription = PollingSubscription(collection_id=3, task=task)

    await subscription.cancel()

    assert task.cancelled() is True
