"""Bracket-stack balancer for near-valid JSON.

A small state machine scans the text once, tracking string/escape state
and a stack of open brackets, and returns the repairs it would make as a
list of named edits. Edits are applied from the highest offset down so
earlier offsets stay valid. Only nesting is fixed here; token-level
problems (stray commas, quoting) are left to the regex passes in the
pipeline.
"""

from dataclasses import dataclass
from enum import Enum


OPENER_FOR = {"}": "{", "]": "["}
CLOSER_FOR = {"{": "}", "[": "]"}


class EditKind(str, Enum):
    INSERT_OPENER = "insert_opener"      # closer with no opener: insert the opener before it
    REPLACE_CLOSER = "replace_closer"    # e.g. "}" closing a "[": replace with "]"
    CLOSE_STRING = "close_string"        # text ends inside a string literal
    APPEND_CLOSER = "append_closer"      # opener never closed
    DROP_ESCAPE = "drop_escape"          # text ends with a lone backslash inside a string


@dataclass(frozen=True)
class Edit:
    kind: EditKind
    offset: int
    text: str
    replace_length: int = 0


def string_mask(text: str) -> bytearray:
    """Per-character flags: 1 where the character is inside a JSON string literal.

    Opening and closing quotes count as inside.
    """
    mask = bytearray(len(text))
    in_string = False
    escape = False
    for i, ch in enumerate(text):
        if in_string:
            mask[i] = 1
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            mask[i] = 1
            in_string = True
    return mask


def plan_repairs(text: str) -> list[Edit]:
    """Scan ``text`` and list the edits that balance its brackets."""
    edits: list[Edit] = []
    stack: list[str] = []
    in_string = False
    escape = False

    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in CLOSER_FOR:
            stack.append(ch)
        elif ch in OPENER_FOR:
            if not stack:
                edits.append(Edit(EditKind.INSERT_OPENER, i, OPENER_FOR[ch]))
            elif stack[-1] == OPENER_FOR[ch]:
                stack.pop()
            else:
                expected = CLOSER_FOR[stack.pop()]
                edits.append(Edit(EditKind.REPLACE_CLOSER, i, expected, replace_length=1))

    end = len(text)
    if in_string:
        # A dangling backslash would escape the closing quote
        if escape:
            edits.append(Edit(EditKind.DROP_ESCAPE, end - 1, "", replace_length=1))
        edits.append(Edit(EditKind.CLOSE_STRING, end, '"'))
    closers = "".join(CLOSER_FOR[opener] for opener in reversed(stack))
    if closers:
        edits.append(Edit(EditKind.APPEND_CLOSER, end, closers))
    return edits


def apply_edits(text: str, edits: list[Edit]) -> str:
    """Apply edits from the highest offset to the lowest.

    Edits sharing an offset keep their planned order (a closing quote goes
    before the appended closers).
    """
    result = text
    ordered = sorted(enumerate(edits), key=lambda pair: (pair[1].offset, pair[0]), reverse=True)
    for _, edit in ordered:
        result = result[: edit.offset] + edit.text + result[edit.offset + edit.replace_length:]
    return result


def balance(text: str) -> tuple[str, list[Edit]]:
    edits = plan_repairs(text)
    return apply_edits(text, edits), edits
