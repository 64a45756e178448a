from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .exceptions import ParseError
from .json_complete import complete
from .json_parse import locate_json, parse
from .mapper import ABSENT, map_partial

if TYPE_CHECKING:
    from collections.abc import Callable

    from .schema import Shape


@dataclass
class ExtractionAttempt:
    """State of one streamed response, from the first delta to the end."""

    number: int
    shape: Shape
    text: str = ""
    partial: Any = ABSENT
    deltas: int = 0
    callback_errors: list[Exception] = field(default_factory=list)


def parse_partial(text: str, shape: Shape) -> Any:
    """Complete, parse and map the text received so far.

    Returns :data:`ABSENT` while no JSON value has started.

    Raises:
        ParseError: If the completed text still does not parse.
    """
    located = locate_json(text)
    completed = complete(located)
    if completed == "null" and not located.startswith("null"):
        return ABSENT
    return map_partial(parse(completed), shape)


def on_delta(
    attempt: ExtractionAttempt,
    delta: str,
    on_chunk: Callable[[Any], Any] | None = None,
) -> Any:
    """Feed one text delta and return the best partial value so far.

    The whole accumulated text is re-parsed on every delta. When it does not
    parse, the previous partial value is kept and nothing is emitted.
    ``on_chunk`` is called only when the partial value changed; exceptions it
    raises are recorded on the attempt and do not interrupt the stream.
    """
    attempt.text += delta
    attempt.deltas += 1
    try:
        partial = parse_partial(attempt.text, attempt.shape)
    except ParseError:
        return attempt.partial

    if partial == attempt.partial:
        return attempt.partial
    attempt.partial = partial
    if on_chunk is not None:
        try:
            on_chunk(partial)
        except Exception as exc:
            attempt.callback_errors.append(exc)
    return partial
