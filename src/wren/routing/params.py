"""Path placeholder converters.

Built-in converters for route path segments like ``{id:int}``. A
converter only decides whether a segment matches; turning the text
into the handler's declared type is the binder's job.
"""

import re

# (regex_pattern, description) for each supported converter
CONVERTERS: dict[str, tuple[str, str]] = {
    "str": (r"[^/]+", "any segment"),
    "int": (r"[+-]?\d+", "an integer"),
    "float": (r"[+-]?\d+(?:\.\d+)?", "a decimal number"),
    "path": (r".+", "the rest of the path"),
}


def segment_regex(param_type: str) -> re.Pattern[str]:
    """Compile the anchored pattern for a converter.

    Raises ``KeyError`` if *param_type* is not a registered converter.
    """
    pattern, _ = CONVERTERS[param_type]
    return re.compile(f"^{pattern}$")
