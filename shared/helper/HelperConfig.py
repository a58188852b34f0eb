"""Central configuration helper for the chat RAG bridge."""

import logging
import os

from shared.exceptions import ConfigurationError

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


class HelperConfig:
    """Reads every setting of the bridge from environment variables.

    Constructed once at process start and handed to every client and
    service together with the application logger. Keys are case-insensitive;
    an empty variable counts as unset.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    ##########################################
    ################ HELPER ##################
    ##########################################

    @staticmethod
    def _read(key: str) -> str | None:
        raw = os.getenv(key.upper())
        if raw is None or not raw.strip():
            return None
        return raw.strip()

    @staticmethod
    def _missing(key: str) -> ConfigurationError:
        return ConfigurationError(f"Environment variable '{key.upper()}' is not set.")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string environment variable.

        Args:
            key (str): Environment variable name.
            default (str | None): Fallback value if the variable is not set.

        Returns:
            str: The resolved value, whitespace stripped.

        Raises:
            ConfigurationError: If the variable is not set and no default is provided.
        """
        raw = self._read(key)
        if raw is not None:
            return raw
        if default is None:
            raise self._missing(key)
        return default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric environment variable. Values containing a dot are floats.

        Raises:
            ConfigurationError: If the variable is not set and no default is provided,
                or if the value is not a number.
        """
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ConfigurationError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean environment variable (true/false, 1/0, yes/no, on/off).

        Raises:
            ConfigurationError: If the variable is not set and no default is provided,
                or if the value is not a recognised boolean.
        """
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        if raw.lower() in _TRUE_VALUES:
            return True
        if raw.lower() in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"Environment variable '{key.upper()}' is not a valid boolean: '{raw}'.")

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list environment variable written as "[elem1,elem2,...]".

        Args:
            key (str): Environment variable name.
            default (list | None): Fallback value if the variable is not set.
            separator (str): Delimiter between the elements.
            element_type (type): Type every element is cast to.

        Returns:
            list: The parsed elements, empty for "[]".

        Raises:
            ConfigurationError: If the variable is not set and no default is provided,
                if the brackets are missing, or if an element cannot be cast.
        """
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        if not (raw.startswith("[") and raw.endswith("]")):
            raise ConfigurationError(f"Environment variable '{key.upper()}' must be in the format '[elem1{separator}elem2{separator}...]'. Got: '{raw}'")
        elements = [element.strip() for element in raw[1:-1].split(separator) if element.strip()]
        try:
            return [element_type(element) for element in elements]
        except ValueError as e:
            raise ConfigurationError(f"Environment variable '{key.upper()}' contains invalid {element_type.__name__} elements: {e}")

    def get_logger(self) -> logging.Logger:
        """Return the application logger."""
        return self._logger
