"""Completion of truncated JSON text.

A model streams its answer a few characters at a time, so the text seen so
far is almost never a full document. :func:`complete` turns any prefix of a
JSON document into the smallest valid document that keeps every value
already fully received:

    >>> complete('{"name": "Da')
    '{"name": "Da"}'
    >>> complete('{"tags": ["a", "b"], "age": 4')
    '{"tags": ["a", "b"]}'
"""

from __future__ import annotations

_CLOSERS = {"{": "}", "[": "]"}
_WHITESPACE = frozenset(" \t\r\n")
_DELIMITERS = frozenset(' \t\r\n,:]}"{[')
_LITERALS = ("true", "false", "null")


def complete(fragment: str) -> str:
    """Close a truncated JSON fragment so it parses.

    The fragment is cut back to the last point where a value, an opening
    bracket or a closing bracket ended, then the containers still open are
    closed in reverse order. An open string in value position is kept and
    closed. Dangling keys, trailing commas, partial literals and numbers
    running to the end of the input are dropped, since a number may still be
    growing. Text after a finished root value is ignored.

    Never raises. Returns ``"null"`` when nothing can be completed yet.
    """
    stack: list[str] = []
    # expect[0] tracks the root value, expect[i] the i-th open container.
    expect = ["value"]
    cut = 0
    i = 0
    n = len(fragment)

    while i < n:
        ch = fragment[i]
        if ch in _WHITESPACE:
            i += 1
            continue

        state = expect[-1]
        if state == "done":
            break

        if ch == '"':
            end = _string_end(fragment, i)
            if end < 0:
                if state == "value":
                    body_end = _open_string_end(fragment, i + 1)
                    return fragment[:body_end] + '"' + _close(stack)
                break
            i = end
            if state == "key":
                expect[-1] = "colon"
            elif state == "value":
                _value_done(expect)
                cut = i
            else:
                break
            continue

        if ch in _CLOSERS:
            if state != "value":
                break
            stack.append(ch)
            expect.append("key" if ch == "{" else "value")
            i += 1
            cut = i
            continue

        if ch in "}]":
            if not stack or _CLOSERS[stack[-1]] != ch:
                break
            if state not in ("comma", "key" if ch == "}" else "value"):
                break
            stack.pop()
            expect.pop()
            _value_done(expect)
            i += 1
            cut = i
            continue

        if ch == ":":
            if state != "colon":
                break
            expect[-1] = "value"
            i += 1
            continue

        if ch == ",":
            if state != "comma":
                break
            expect[-1] = "key" if stack[-1] == "{" else "value"
            i += 1
            continue

        # number or literal
        if state != "value":
            break
        j = i
        while j < n and fragment[j] not in _DELIMITERS:
            j += 1
        if j == n:
            if fragment[i:j] in _LITERALS:
                cut = n
            break
        i = j
        _value_done(expect)
        cut = i

    if not fragment[:cut].strip():
        return "null"
    return fragment[:cut] + _close(stack)


def _value_done(expect: list[str]) -> None:
    expect[-1] = "done" if len(expect) == 1 else "comma"


def _close(stack: list[str]) -> str:
    return "".join(_CLOSERS[opener] for opener in reversed(stack))


def _string_end(text: str, start: int) -> int:
    """Index just past the quote closing the string at ``start``, or -1."""
    j = start + 1
    n = len(text)
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == '"':
            return j + 1
        j += 1
    return -1


def _open_string_end(text: str, body_start: int) -> int:
    """End of the usable body of an unterminated string.

    An escape sequence cut off by the end of input is dropped.
    """
    j = body_start
    n = len(text)
    while j < n:
        if text[j] != "\\":
            j += 1
            continue
        if j + 1 >= n:
            return j
        if text[j + 1] == "u":
            if j + 6 > n:
                return j
            j += 6
        else:
            j += 2
    return n
