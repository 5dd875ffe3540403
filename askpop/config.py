"""Configuration management for AskPop."""

import os
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv

from askpop.llm.models import ChatRequestConfig
from askpop.llm.streaming.aggregator import DEFAULT_PUBLISH_THRESHOLD
from askpop.sinks import DispatchMode

ENV_PREFIX = "POPCLIP_OPTION_"
FALSE_VALUES = {"0", "false", "no", "off", ""}

logger = structlog.get_logger(__name__)

ACTION_PROMPT_KEYS = {
    "qa_action": "POPCLIP_OPTION_QA_PROMPT",
    "translate_action": "POPCLIP_OPTION_TRANSLATE_PROMPT",
}


def _as_bool(value: str) -> bool:
    return value.strip().lower() not in FALSE_VALUES


class Configuration:
    """Layers config.yaml, .env and POPCLIP_OPTION_* environment variables."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self._config = self._load_yaml_config(config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if config_path is None:
            config_path = os.path.join(os.path.dirname(__file__), "config.yaml")
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_llm_config(self) -> dict[str, Any]:
        """Get the `llm` section from YAML."""
        return self._config.get("llm", {})

    @property
    def api_key(self) -> str:
        """API key from the environment; empty when not set.

        An empty key is not rejected here: the request builder raises
        ConfigError so the failure reaches the session's error channel.
        """
        return os.getenv(f"{ENV_PREFIX}APIKEY", "")

    def chat_request_config(self) -> ChatRequestConfig:
        """Build the immutable per-request configuration."""
        llm_config = self.get_llm_config()

        endpoint = os.getenv(f"{ENV_PREFIX}API_URL") or llm_config.get("api_url", "")
        model = os.getenv(f"{ENV_PREFIX}MODEL") or llm_config.get("model", "")

        temperature = float(llm_config.get("temperature", 0.7))
        raw_temperature = os.getenv(f"{ENV_PREFIX}TEMPERATURE")
        if raw_temperature:
            try:
                temperature = float(raw_temperature)
            except ValueError:
                logger.warning(
                    "Ignoring unparseable temperature override", value=raw_temperature
                )

        temperature_enabled = bool(llm_config.get("temperature_enabled", True))
        raw_enabled = os.getenv(f"{ENV_PREFIX}ENABLE_TEMPERATURE")
        if raw_enabled is not None:
            temperature_enabled = _as_bool(raw_enabled)

        return ChatRequestConfig(
            endpoint=endpoint,
            api_key=self.api_key,
            model=model,
            temperature=temperature,
            temperature_enabled=temperature_enabled,
        )

    def dispatch_mode(self) -> DispatchMode:
        """Resolve note capture vs. conversation once, before a session starts."""
        raw = os.getenv(f"{ENV_PREFIX}NOTE_MODE")
        if raw is not None:
            note_mode = _as_bool(raw)
        else:
            note_mode = bool(self._config.get("chat", {}).get("note_mode", False))
        return DispatchMode.NOTE if note_mode else DispatchMode.CONVERSATION

    def get_system_prompt(self) -> str:
        return str(self.get_llm_config().get("system_prompt", ""))

    def resolve_prompt(self, default_prompt: str = "") -> str:
        """Pick the prompt for the PopClip action that launched us."""
        action = os.getenv("POPCLIP_ACTION_IDENTIFIER", "")
        env_key = ACTION_PROMPT_KEYS.get(action)
        if env_key is not None:
            return os.getenv(env_key, default_prompt)
        return default_prompt

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client timeouts.

        Returns:
            HTTP client configuration dictionary with validated values.

        Raises:
            ValueError: If a timeout is missing or not a positive number.
        """
        http_config = self.get_llm_config().get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"llm.http_client.{key} must be explicitly configured "
                    "in config.yaml"
                )
            value = http_config[key]
            if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
                raise ValueError(f"llm.http_client.{key} must be a positive number")

        return http_config

    def get_publish_threshold(self) -> int:
        """Minimum pending characters between publishes after the first one."""
        stream_config = self._config.get("chat", {}).get("stream", {})
        threshold = stream_config.get("publish_threshold", DEFAULT_PUBLISH_THRESHOLD)

        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
            raise ValueError("chat.stream.publish_threshold must be a positive integer")

        return threshold

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})
