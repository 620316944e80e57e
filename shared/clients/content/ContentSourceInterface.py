from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.events import ChangeEvent
from shared.models.index import DocumentRef, DocumentStat


class ContentSourceInterface(ABC):
    """The document collection the index is built from.

    Enumerates documents, reads their content, reports size/mtime and streams
    change notifications. Paths are vault-relative POSIX paths.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Validates that all required configuration values for the content source are set.

        Raises:
            ConfigurationError: If any required configuration value is missing or invalid.
        """
        for config in self._get_required_config():
            _ = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return "content"

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the content source. E.g. "filesystem"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns all required configurations for the content source.

        Returns:
            list[EnvConfig]: A list containing the details of each required configuration key.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The full configuration key name. E.g. "CONTENT_FILESYSTEM_ROOT"
        """
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Retrieves the value of a configuration key for the content source.

        Args:
            raw_key (str): The raw configuration key name
            default (Any): The default value to return if the configuration key is not set
            val_type (str): The type of the configuration value ("string", "number", "bool", "list")
        """
        return self._helper_config.get_typed_val(self._get_config_key_name(raw_key), val_type=val_type, default=default)

    @abstractmethod
    def get_root(self) -> str:
        """Returns a human readable location of the collection (e.g. the vault directory)."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def list_documents(self) -> list[DocumentRef]:
        """
        Enumerates all documents currently in the collection, in a stable order.

        Returns:
            list[DocumentRef]: The documents.
        """
        pass

    @abstractmethod
    async def read(self, doc: DocumentRef) -> str:
        """
        Reads a document's text content.

        Raises:
            OSError: If the document cannot be read.
        """
        pass

    @abstractmethod
    async def stat(self, doc: DocumentRef) -> DocumentStat:
        """
        Returns the document's modification time and size.

        Raises:
            OSError: If the document does not exist anymore.
        """
        pass

    @abstractmethod
    def get_document(self, path: str) -> DocumentRef | None:
        """
        Resolves a path to a document reference, if it belongs to the collection.

        Returns:
            DocumentRef | None: The reference, or None for paths outside the collection
                or excluded by its filters.
        """
        pass

    @abstractmethod
    def watch(self) -> AsyncIterator[ChangeEvent]:
        """
        Streams change notifications until the consuming task is cancelled.

        Yields:
            ChangeEvent: created / modified / deleted / renamed events.
        """
        pass
