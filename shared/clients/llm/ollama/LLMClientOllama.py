from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientOllama(LLMClientInterface):
    """Native Ollama API. LLM_OLLAMA_BASE_URL is required, LLM_OLLAMA_API_KEY is for proxies in front of it."""

    def _get_engine_name(self) -> str:
        return "Ollama"

    ################ ENDPOINTS ##################
    def _get_endpoint_healthcheck(self) -> str:
        # ollama answers "Ollama is running" on its root
        return ""

    def get_endpoint_embedding(self) -> str:
        return "/api/embed"

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str], model: str) -> dict:
        return {"model": model, "input": texts}

    def get_chat_payload(self, messages: list[dict], model: str) -> dict:
        return {
            "model": model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": self.chat_temperature, "num_predict": self.chat_max_tokens},
        }

    ################ RESPONSE PARSER ##################
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        embeddings = response_data.get("embeddings")
        if not embeddings or any(not vector for vector in embeddings):
            raise ValueError(f"no embeddings in response (keys: {list(response_data.keys())})")
        return embeddings

    def extract_chat_response(self, response_data: dict) -> str:
        content = (response_data.get("message") or {}).get("content")
        if content is None:
            raise ValueError(f"no message in chat response (keys: {list(response_data.keys())})")
        return content
