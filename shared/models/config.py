import os

from pydantic import BaseModel, ConfigDict, Field

from shared.helper.HelperConfig import HelperConfig


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required for a env setting.

    Attributes:
        env_key (str): The key/name of the environment variable to read.
        val_type (str): The expected type of the environment variable's value. Supported types are "string", "number", "bool", and "list".
        default (str | int | float | bool | list | None): An optional default value if the environment variable is not set. If None, the variable is required and an error will be raised if it is not set.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None


class RAGConfig(BaseModel):
    """Immutable engine configuration.

    Built once from the environment and handed to every component at
    construction. Changing a setting means building a new RAGConfig and passing
    it to RAGEngine.reconfigure(); nothing mutates an instance in place.
    """

    model_config = ConfigDict(frozen=True)

    # models
    embedding_model: str
    chat_model: str

    # index
    index_path: str
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)

    # change scheduling
    quiescence_seconds: float = Field(default=2.0, ge=0)
    auto_index_on_startup: bool = True
    auto_index_on_change: bool = True
    progress_buffer: int = Field(default=100, gt=0)

    # retrieval
    similarity_threshold: float = 0.7
    max_results: int = Field(default=5, gt=0)
    context_boost: float = Field(default=1.2, ge=1.0)
    include_file_paths: bool = True

    @classmethod
    def from_helper_config(cls, helper_config: HelperConfig, content_root: str | None = None) -> "RAGConfig":
        """Collect all engine settings from the environment.

        Args:
            helper_config (HelperConfig): The env configuration reader.
            content_root (str | None): Root directory of the content source, used to
                derive the default index location. Falls back to CONTENT_FILESYSTEM_ROOT.

        Returns:
            RAGConfig: The frozen configuration value.

        Raises:
            ConfigurationError: If a required variable (e.g. LLM_MODEL) is missing or invalid.
        """
        embedding_model = helper_config.get_string_val("LLM_MODEL")
        root = content_root or helper_config.get_string_val("CONTENT_FILESYSTEM_ROOT")
        default_index_path = os.path.join(root, ".vault_rag", "vault-index.json")
        return cls(
            embedding_model=embedding_model,
            chat_model=helper_config.get_string_val("LLM_CHAT_MODEL", default=embedding_model),
            index_path=helper_config.get_string_val("INDEX_PATH", default=default_index_path),
            chunk_size=helper_config.get_number_val("INDEX_CHUNK_SIZE", default=1000),
            chunk_overlap=helper_config.get_number_val("INDEX_CHUNK_OVERLAP", default=200),
            quiescence_seconds=helper_config.get_number_val("INDEX_QUIESCENCE_SECONDS", default=2.0),
            auto_index_on_startup=helper_config.get_bool_val("INDEX_AUTO_ON_STARTUP", default=True),
            auto_index_on_change=helper_config.get_bool_val("INDEX_AUTO_ON_CHANGE", default=True),
            progress_buffer=helper_config.get_number_val("INDEX_PROGRESS_BUFFER", default=100),
            similarity_threshold=helper_config.get_number_val("QUERY_SIMILARITY_THRESHOLD", default=0.7),
            max_results=helper_config.get_number_val("QUERY_MAX_RESULTS", default=5),
            context_boost=helper_config.get_number_val("QUERY_CONTEXT_BOOST", default=1.2),
            include_file_paths=helper_config.get_bool_val("QUERY_INCLUDE_FILE_PATHS", default=True),
        )
