from shared.clients.engine_loader import load_engine
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig


class LLMClientManager:
    """Builds the LLM client named by LLM_ENGINE (ollama or openai)."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        # no default, the embedding backend is a deliberate choice
        engine = helper_config.get_string_val("LLM_ENGINE")
        self.client: LLMClientInterface = load_engine(helper_config, "llm", "LLMClient", engine)

    def get_client(self) -> LLMClientInterface:
        return self.client
