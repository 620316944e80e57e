from abc import ABC, abstractmethod
from typing import Any

import httpx

from shared.exceptions import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Base for HTTP backed clients.

    Settings follow the ``{TYPE}_{ENGINE}_{KEY}`` naming scheme, e.g.
    LLM_OLLAMA_BASE_URL. Every engine declares BASE_URL and may declare
    API_KEY, which is sent as a bearer token when set. The shared
    ``{TYPE}_TIMEOUT`` applies to every request.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self._base_url = self.get_config_val("BASE_URL", default=self._get_default_base_url()).rstrip("/")
        self._api_key = self.get_config_val("API_KEY", default="")

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every declared setting once so a missing or malformed value fails at construction.

        Raises:
            ConfigurationError: If any required configuration value is missing or invalid.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_client_type(self) -> str:
        """Lowercase client type, e.g. "llm"."""
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """Lowercase engine name, e.g. "ollama"."""
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    def get_base_url(self) -> str:
        return self._base_url

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        """Settings checked at construction. Engines extend this list for extra keys."""
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=self._get_default_base_url()),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    def _get_default_base_url(self) -> str | None:
        """Base URL used when none is configured. None makes BASE_URL mandatory."""
        return None

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads the engine scoped setting ``{TYPE}_{ENGINE}_{raw_key}``.

        Raises:
            ConfigurationError: If the key is required but unset, or the type is unsupported.
        """
        key = f"{self.get_client_type()}_{self.get_engine_name()}_{raw_key}".upper()
        return self._helper_config.get_typed_val(key, val_type=val_type, default=default)

    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """Path probed by do_healthcheck, relative to the base URL ("" for the root)."""
        pass

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP client. Tests pass an httpx.MockTransport here."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._get_auth_header(),
            timeout=self.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Probe the backend. The caller decides what a non-2xx status means."""
        return await self.do_request("GET", self._get_endpoint_healthcheck())

    async def do_request(
        self,
        method: str,
        endpoint: str = "",
        json: dict | None = None,
        params: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send a request to ``base_url + endpoint``.

        Raises:
            ProviderError: If the client is not booted, the transport fails or
                times out, or the status is not 2xx and ``raise_on_error`` is set.
        """
        if self._client is None:
            raise ProviderError(f"{self.get_client_type().upper()} client '{self.get_engine_name()}' is not booted.")

        path = endpoint.strip()
        url = f"{self._base_url}/{path.lstrip('/')}" if path else self._base_url
        try:
            response = await self._client.request(method, url, json=json, params=params)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"{method} {url} timed out after {self.timeout}s.") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"{method} {url} failed: {exc}") from exc

        if raise_on_error and not response.is_success:
            self.logging.error("%s %s returned %d: %s", method, url, response.status_code, response.text[:200])
            raise ProviderError(f"{method} {url} returned status {response.status_code}.", status_code=response.status_code)
        return response
