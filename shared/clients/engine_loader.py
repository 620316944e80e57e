import importlib
from typing import Any

from shared.exceptions import ConfigurationError
from shared.helper.HelperConfig import HelperConfig


def load_engine(helper_config: HelperConfig, client_type: str, class_prefix: str, engine: str) -> Any:
    """Import and instantiate ``shared.clients.<type>.<engine>.<Prefix><Engine>``.

    "ollama" for type "llm" resolves to LLMClientOllama in
    shared/clients/llm/ollama/LLMClientOllama.py.

    Raises:
        ConfigurationError: If no such engine exists, or its settings are incomplete.
    """
    engine = engine.strip().lower()
    if not engine:
        raise ConfigurationError(f"No {client_type} engine configured ({client_type.upper()}_ENGINE).")
    class_name = f"{class_prefix}{engine.capitalize()}"
    try:
        module = importlib.import_module(f"shared.clients.{client_type}.{engine}.{class_name}")
        client_class = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Unsupported {client_type} engine '{engine}': {e}") from e
    client = client_class(helper_config=helper_config)
    helper_config.get_logger().debug("Instantiated %s for engine: %s", class_name, engine)
    return client
