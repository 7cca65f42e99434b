class ChainError(Exception):
    kind = "infrastructure"
    status_code = 500
    code = "E_CHAIN"
    message = "Chain operation failed"

    def __init__(self, message: str | None = None, *, context: dict[str, object] | None = None) -> None:
        self.message = message or self.message
        self.context = context or {}
        super().__init__(self.message)


class CollectionNotFoundError(ChainError):
    kind = "not_found"
    status_code = 404
    code = "E_COLLECTION_NOT_FOUND"
    message = "Collection not found"


class ItemNotFoundError(ChainError):
    kind = "not_found"
    status_code = 404
    code = "E_ITEM_NOT_FOUND"
    message = "Item not found"


class UnsupportedChainError(ChainError):
    kind = "validation"
    status_code = 400
    code = "E_CHAIN_UNSUPPORTED"
    message = "Chain has no RPC endpoint configured"


class ChainProviderError(ChainError):
    code = "E_CHAIN_PROVIDER"
    message = "Chain RPC call failed"


class MetadataFetchError(ChainError):
    code = "E_METADATA_FETCH"
    message = "Token metadata could not be fetched"
