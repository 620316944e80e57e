from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import ProviderError
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(ClientInterface):
    """Embedding and chat provider.

    LLM_MODEL is the embedding model. LLM_CHAT_MODEL falls back to it, which
    suits servers that load a single model for both jobs.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.embed_model = helper_config.get_string_val("LLM_MODEL")
        self.chat_model = helper_config.get_string_val("LLM_CHAT_MODEL", default=self.embed_model)
        self.chat_temperature = helper_config.get_number_val("LLM_TEMPERATURE", default=0.7)
        self.chat_max_tokens = int(helper_config.get_number_val("LLM_MAX_TOKENS", default=1000))

    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str], model: str) -> dict:
        pass

    @abstractmethod
    def get_chat_payload(self, messages: list[dict], model: str) -> dict:
        """Request body for ``messages`` in OpenAI format ([{"role": ..., "content": ...}])."""
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Vectors in input order.

        Raises:
            ValueError: If the body carries no usable vectors.
        """
        pass

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Assistant reply text.

        Raises:
            ValueError: If the body carries no reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _post_json(self, endpoint: str, body: dict, what: str) -> dict:
        response = await self.do_request("POST", endpoint, json=body, raise_on_error=True)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"{what} response from '{self.get_engine_name()}' is not JSON.") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{what} response from '{self.get_engine_name()}' is not a JSON object.")
        return data

    async def do_embed(self, texts: list[str] | str, model: str | None = None) -> list[list[float]]:
        """Embed one or more texts.

        Args:
            texts (list[str] | str): Texts to embed; a single string is wrapped in a list.
            model (str | None): Embedding model, defaults to LLM_MODEL.

        Returns:
            list[list[float]]: One vector per input, in input order.

        Raises:
            ProviderError: If the request fails or the response carries no usable vectors.
        """
        texts = [texts] if isinstance(texts, str) else list(texts)
        data = await self._post_json(self.get_endpoint_embedding(), self.get_embed_payload(texts, model or self.embed_model), "Embedding")
        try:
            vectors = self.extract_embeddings_from_response(data)
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(f"Unexpected embedding response from '{self.get_engine_name()}': {exc}") from exc
        if len(vectors) != len(texts):
            raise ProviderError(f"Embedding response holds {len(vectors)} vector(s) for {len(texts)} input(s).")
        return vectors

    async def do_chat(self, messages: list[dict], model: str | None = None) -> str:
        """Send a non-streaming chat request and return the reply text.

        Raises:
            ProviderError: If the request fails or the response does not contain a reply.
        """
        data = await self._post_json(self._get_endpoint_chat(), self.get_chat_payload(messages, model or self.chat_model), "Chat")
        try:
            return self.extract_chat_response(data)
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(f"Unexpected chat response from '{self.get_engine_name()}': {exc}") from exc
