"""Environment-driven configuration."""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError


def _int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got '{value}'") from e


@dataclass
class Settings:
    """Runtime settings."""
    proxy_base_url: Optional[str] = None
    models_dir: str = "models"
    network_path: Optional[str] = None  # Fetched from the proxy when unset
    max_concurrent_fetches: int = 8
    history_page_limit: Optional[int] = None  # Data source maximum when unset
    request_timeout: int = 10
    prediction_window_minutes: int = 120
    max_prediction_hops: int = 32

    @property
    def prediction_window(self) -> timedelta:
        return timedelta(minutes=self.prediction_window_minutes)

    def require_proxy_base_url(self) -> str:
        if not self.proxy_base_url:
            raise ConfigurationError("PROXY_BASE_URL is not defined in environment variables")
        return self.proxy_base_url

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, load_env_file: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ.
            load_env_file: Load a .env file found from the working directory first.
        """
        if env is None:
            if load_env_file:
                load_dotenv(find_dotenv(usecwd=True))
            env = os.environ

        settings = cls(
            proxy_base_url=env.get("PROXY_BASE_URL") or None,
            models_dir=env.get("MODELS_DIR") or cls.models_dir,
            network_path=env.get("NETWORK_PATH") or None,
            max_concurrent_fetches=_int(env, "MAX_CONCURRENT_FETCHES", cls.max_concurrent_fetches),
            history_page_limit=_int(env, "HISTORY_PAGE_LIMIT", None),
            request_timeout=_int(env, "REQUEST_TIMEOUT", cls.request_timeout),
            prediction_window_minutes=_int(env, "PREDICTION_WINDOW_MINUTES", cls.prediction_window_minutes),
            max_prediction_hops=_int(env, "MAX_PREDICTION_HOPS", cls.max_prediction_hops),
        )
        if settings.max_concurrent_fetches < 1:
            raise ConfigurationError("MAX_CONCURRENT_FETCHES must be at least 1")
        return settings
