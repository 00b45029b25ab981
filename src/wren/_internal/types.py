"""Shared type aliases used across wren modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler: user-defined function with variable signature
Handler: TypeAlias = Callable[..., Any]

# Error handler: receives (request, error?) and returns a result value
ErrorHandler: TypeAlias = Callable[..., Any]

# Validation rule: returns an error message, or None when the value is valid
Validator: TypeAlias = Callable[[str], str | None]
