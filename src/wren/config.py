"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from typing import Literal

_SCOPES = ("request", "singleton")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, controller_scope="singleton")
    """

    debug: bool = False

    # Dispatch
    controller_scope: Literal["request", "singleton"] = "request"  # Default for app.controller()
    strict_params: bool = True  # Undeclared request values are rejected (404)
    validate_container: bool = True  # Walk controller dependency graphs at freeze

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    # Logging
    log_level: str = "info"

    def __post_init__(self) -> None:
        if self.controller_scope not in _SCOPES:
            msg = f"controller_scope must be one of {_SCOPES}, got {self.controller_scope!r}"
            raise ValueError(msg)
        if self.max_content_length < 0:
            msg = "max_content_length must not be negative"
            raise ValueError(msg)
