"""
Lenient JSON (JSONC) normalization.

Turns JSON-with-comments into strict JSON by removing ``//`` and ``/* */``
comments and trailing commas. Both passes are explicit state machines that
track string literals, so comment-like text and commas inside strings are
never touched. Malformed input is passed through best-effort; the JSON parser
downstream is the one that reports errors.
"""

from enum import Enum
from typing import List, Union

JSONText = Union[str, bytes]

_WHITESPACE = " \t\r\n"


class _CommentState(Enum):
    NORMAL = "normal"
    IN_STRING = "in_string"
    IN_LINE_COMMENT = "in_line_comment"
    IN_BLOCK_COMMENT = "in_block_comment"


class _CommaState(Enum):
    NORMAL = "normal"
    IN_STRING = "in_string"


def strip_comments(text: str) -> str:
    """
    Remove line and block comments outside of string literals.

    The newline ending a line comment is kept so line numbers in later JSON
    errors still match the source file. An unterminated block comment
    swallows the rest of the input.
    """
    out: List[str] = []
    state = _CommentState.NORMAL
    escape = False
    i = 0
    length = len(text)

    while i < length:
        ch = text[i]

        if state is _CommentState.IN_LINE_COMMENT:
            if ch == "\n":
                out.append(ch)
                state = _CommentState.NORMAL
            i += 1
            continue

        if state is _CommentState.IN_BLOCK_COMMENT:
            if ch == "*" and i + 1 < length and text[i + 1] == "/":
                state = _CommentState.NORMAL
                i += 2
            else:
                i += 1
            continue

        if state is _CommentState.IN_STRING:
            out.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                state = _CommentState.NORMAL
            i += 1
            continue

        # NORMAL
        if ch == '"':
            state = _CommentState.IN_STRING
            out.append(ch)
            i += 1
            continue

        if ch == "/" and i + 1 < length:
            nxt = text[i + 1]
            if nxt == "/":
                state = _CommentState.IN_LINE_COMMENT
                i += 2
                continue
            if nxt == "*":
                state = _CommentState.IN_BLOCK_COMMENT
                i += 2
                continue

        out.append(ch)
        i += 1

    return "".join(out)


def strip_trailing_commas(text: str) -> str:
    """Drop commas whose next significant character closes an object or array."""
    out: List[str] = []
    state = _CommaState.NORMAL
    escape = False
    length = len(text)

    for i, ch in enumerate(text):
        if state is _CommaState.IN_STRING:
            out.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                state = _CommaState.NORMAL
            continue

        if ch == '"':
            state = _CommaState.IN_STRING
        elif ch == ",":
            # A run like ",," before a closer is dropped as a whole.
            j = i + 1
            while j < length and (text[j] in _WHITESPACE or text[j] == ","):
                j += 1
            if j < length and text[j] in "}]":
                continue

        out.append(ch)

    return "".join(out)


def normalize_jsonc(content: JSONText) -> JSONText:
    """
    Normalize JSONC to strict JSON.

    Accepts ``str`` or ``bytes`` and returns the same type. Bytes are mapped
    one-to-one through latin-1, which is lossless and safe for UTF-8 input
    because every delimiter involved is ASCII and multi-byte UTF-8 sequences
    never contain ASCII bytes.

    Comments must be stripped before trailing commas: in ``[1, // x\\n]`` the
    comma is only trailing once the comment is gone.
    """
    if isinstance(content, bytes):
        text = content.decode("latin-1")
        return strip_trailing_commas(strip_comments(text)).encode("latin-1")
    return strip_trailing_commas(strip_comments(content))
