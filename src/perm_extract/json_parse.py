"""JSON parsing for model output.

Values come back as plain Python data: ``None``, ``bool``, ``int``, ``float``,
``str``, ``list`` and ``dict`` (key order preserved). Integers keep full
precision as ``int``; numbers with a fraction or exponent become ``float`` and
carry the usual double-precision limits.
"""

from __future__ import annotations

import json
from typing import Any

from .exceptions import ParseError

_FENCE = "```"
_SCALAR_START = frozenset('"-0123456789')
_LITERALS = ("true", "false", "null")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


_DECODER = json.JSONDecoder(parse_constant=_reject_constant)


def parse(text: str) -> Any:
    """Parse a complete JSON document.

    Raises:
        ParseError: If the text is not well-formed JSON.
    """
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ParseError(e.pos, e.msg) from e
    except (ValueError, RecursionError) as e:
        raise ParseError(0, str(e) or type(e).__name__) from e


def parse_root(text: str) -> Any:
    """Parse the JSON value at the start of ``text``, ignoring what follows it.

    Models often close their answer with a code fence or a line of prose.

    Raises:
        ParseError: If no well-formed JSON value starts the text.
    """
    stripped = text.lstrip()
    offset = len(text) - len(stripped)
    try:
        value, _ = _DECODER.raw_decode(stripped)
    except json.JSONDecodeError as e:
        raise ParseError(offset + e.pos, e.msg) from e
    except (ValueError, RecursionError) as e:
        raise ParseError(offset, str(e) or type(e).__name__) from e
    return value


def locate_json(text: str) -> str:
    """Skip whatever precedes the JSON value in a model response.

    Models answering in plain text often open with a Markdown code fence or a
    sentence of prose. Returns ``""`` while no value has started yet.
    """
    stripped = text.lstrip()
    if stripped.startswith(_FENCE):
        newline = stripped.find("\n")
        if newline < 0:
            return ""
        stripped = stripped[newline + 1 :].lstrip()
    if not stripped:
        return ""
    if stripped[0] in "{[" or stripped[0] in _SCALAR_START:
        return stripped
    if any(lit.startswith(stripped[:4]) or stripped.startswith(lit) for lit in _LITERALS):
        return stripped
    starts = [pos for pos in (stripped.find("{"), stripped.find("[")) if pos >= 0]
    return stripped[min(starts) :] if starts else ""

