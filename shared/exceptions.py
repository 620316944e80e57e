"""Exception hierarchy shared by the vault index, the clients and the server."""


class VaultRAGError(Exception):
    """Base class for all errors raised by vault_rag."""


class ConfigurationError(VaultRAGError, ValueError):
    """A required setting, credential or endpoint is missing or invalid.

    Subclasses ValueError so callers that guard configuration reads with
    ``except ValueError`` keep working.
    """


class ProviderError(VaultRAGError):
    """The embedding or chat provider failed (network, HTTP status, timeout or response shape)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class IndexCorruptionError(VaultRAGError):
    """The persisted index could not be parsed or has an unsupported format version."""


class EmptyCorpusError(VaultRAGError):
    """A search ran against an index that holds no embedded chunks yet."""

    def __init__(self, message: str = "The vault has not been indexed yet. Run indexing and try again."):
        super().__init__(message)
