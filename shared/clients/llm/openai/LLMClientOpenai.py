from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions import ConfigurationError

OPENAI_BASE_URL = "https://api.openai.com/v1"


class LLMClientOpenai(LLMClientInterface):
    """Client for OpenAI and OpenAI-compatible servers (llama.cpp, vLLM, LocalAI, ...).

    The API key is mandatory against the official endpoint and optional for
    self-hosted servers configured through LLM_OPENAI_BASE_URL.
    """

    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_base_url(self) -> str:
        return OPENAI_BASE_URL

    def validate_full_configuration(self) -> None:
        super().validate_full_configuration()
        base_url = self.get_config_val("BASE_URL", default=OPENAI_BASE_URL)
        if not base_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Invalid base URL '{base_url}' for the openai engine: must start with http:// or https://.")
        if base_url.rstrip("/") == OPENAI_BASE_URL and not self.get_config_val("API_KEY", default=""):
            raise ConfigurationError("The openai engine requires LLM_OPENAI_API_KEY when talking to api.openai.com.")

    ################ ENDPOINTS ##################
    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return "/embeddings"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str], model: str) -> dict:
        return {"model": model, "input": texts}

    def get_chat_payload(self, messages: list[dict], model: str) -> dict:
        return {
            "model": model,
            "messages": messages,
            "temperature": self.chat_temperature,
            "max_tokens": self.chat_max_tokens,
        }

    ################ RESPONSE PARSER ##################
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Vectors from an /embeddings body, ordered by each item's "index".

        A bare {"embedding": [...]} body, as some self-hosted servers return
        for a single input, is accepted too.
        """
        data = response_data.get("data")
        if data:
            embeddings = [item.get("embedding") for item in sorted(data, key=lambda item: item.get("index", 0))]
        elif response_data.get("embedding"):
            embeddings = [response_data["embedding"]]
        else:
            raise ValueError(f"no embeddings in response (keys: {list(response_data.keys())})")
        if any(not vector for vector in embeddings):
            raise ValueError("response contains an empty vector")
        return embeddings

    def extract_chat_response(self, response_data: dict) -> str:
        choices = response_data.get("choices") or []
        if choices and (choices[0].get("message") or {}).get("content") is not None:
            return choices[0]["message"]["content"]
        if response_data.get("response") is not None:
            return response_data["response"]
        raise ValueError(f"no choices in chat response (keys: {list(response_data.keys())})")
