"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No protocol constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from orchestrator.enums.encoding import EncodingMode
from orchestrator.enums.newline import NewlineMode
from spec import SERIAL_DEFAULT_BAUDRATE, SERIAL_DEFAULT_DEVICE


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) == "1"


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the gateway, which seeds each session's state from it.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    device: str
    baudrate: int

    # ------------------------------------------------------------------
    # Terminal defaults (changeable per session at runtime)
    # ------------------------------------------------------------------

    newline_mode: NewlineMode
    encoding_mode: EncodingMode
    auto_submit_dictation: bool

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    # Re-raise InvalidTransition instead of ignoring it
    strict_transitions: bool

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Web server
    # ------------------------------------------------------------------

    host: str
    port: int

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a mode or number is malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            device=os.environ.get("DEVICE", SERIAL_DEFAULT_DEVICE),
            baudrate=int(os.environ.get("BAUDRATE", str(SERIAL_DEFAULT_BAUDRATE))),

            newline_mode=NewlineMode(os.environ.get("NEWLINE_MODE", "crlf").lower()),
            encoding_mode=EncodingMode(os.environ.get("ENCODING_MODE", "text").lower()),
            auto_submit_dictation=_flag("AUTO_SUBMIT_DICTATION", "1"),

            strict_transitions=_flag("STRICT_TRANSITIONS", "0"),

            enable_json_logs=_flag("ENABLE_JSON_LOGS", "1"),

            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "8000")),
        )
