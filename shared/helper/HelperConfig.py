"""Environment backed settings for vault_rag.

Keys are upper-cased before lookup. An empty variable counts as unset, and an
unset variable without a default is a ConfigurationError.
"""

import logging
import os
from typing import Any, Callable

from shared.exceptions import ConfigurationError

_TRUE_VALUES = ("true", "1", "yes", "on")


class HelperConfig:
    """Reads typed settings from environment variables and hands out the application logger."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _raw(self, key: str) -> str | None:
        raw = os.getenv(key.upper())
        return raw.strip() if raw and raw.strip() else None

    def _missing(self, key: str, default: Any) -> Any:
        if default is None:
            raise ConfigurationError(f"Environment variable '{key.upper()}' is not set.")
        return default

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string variable.

        Raises:
            ConfigurationError: If the variable is not set and no default is provided.
        """
        raw = self._raw(key)
        return raw if raw is not None else self._missing(key, default)

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read an int (no dot) or float variable.

        Raises:
            ConfigurationError: If the variable is unset without default, or not a number.
        """
        raw = self._raw(key)
        if raw is None:
            return self._missing(key, default)
        try:
            return float(raw) if "." in raw or "e" in raw.lower() else int(raw)
        except ValueError:
            raise ConfigurationError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean variable. true/1/yes/on are truthy, anything else is False."""
        raw = self._raw(key)
        if raw is None:
            return self._missing(key, default)
        return raw.lower() in _TRUE_VALUES

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a bracketed list variable such as ``[.md,.markdown]``.

        Raises:
            ConfigurationError: If the variable is unset without default, is not
                wrapped in brackets, or holds elements that fail ``element_type``.
        """
        raw = self._raw(key)
        if raw is None:
            return self._missing(key, default)
        if not (raw.startswith("[") and raw.endswith("]")):
            raise ConfigurationError(f"Environment variable '{key.upper()}' must look like '[a{separator}b]'. Got: '{raw}'")
        try:
            return [element_type(item.strip()) for item in raw[1:-1].split(separator) if item.strip()]
        except ValueError as e:
            raise ConfigurationError(f"Environment variable '{key.upper()}' holds an invalid {element_type.__name__}: {e}")

    def get_typed_val(self, key: str, val_type: str = "string", default: Any = None) -> Any:
        """Read a variable through the getter named by ``val_type`` (string, number, bool or list).

        Raises:
            ConfigurationError: For an unknown ``val_type`` or any error of the chosen getter.
        """
        getters: dict[str, Callable[..., Any]] = {
            "string": self.get_string_val,
            "number": self.get_number_val,
            "bool": self.get_bool_val,
            "list": self.get_list_val,
        }
        getter = getters.get(val_type)
        if getter is None:
            raise ConfigurationError(f"Unsupported config value type '{val_type}' for '{key.upper()}'.")
        return getter(key, default=default)

    def get_logger(self) -> logging.Logger:
        return self._logger
