"""Wren middleware.

Built-in upstream filters run before dispatch and hand a replaced
request copy to the next handler in the chain.
"""

from wren.middleware.prefix import StripPrefix
from wren.middleware.protocol import Middleware, Next

__all__ = [
    "Middleware",
    "Next",
    "StripPrefix",
]
