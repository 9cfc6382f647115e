"""Repair and validation of JSON objects embedded in LLM completions.

LLM completions are free-form text: the object may be wrapped in a markdown fence, surrounded by
prose, or cut off by the output-length cap. This module recovers the first JSON object from such
text with a small brace/string state machine and validates it as an `Intent`.

Everything here is a pure function of the input string.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import ValidationError

from src.intent.schema import Intent, intent_from_obj

MalformedKind = Literal["no_json", "invalid_json", "validation"]

_CODE_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?(?P<body>.*?)(?:```|$)", flags=re.DOTALL)
_BARE_KEY_RE = re.compile(r"(?P<lead>[{,]\s*)(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*:")
_TRAILING_COMMA_RE = re.compile(r",\s*(?P<close>[}\]])")


class MalformedResponse(ValueError):
    """Raised when a completion cannot be turned into a valid Intent."""

    def __init__(self, kind: MalformedKind, message: str) -> None:
        super().__init__(message)
        self.kind: MalformedKind = kind


class ScanState(Enum):
    """Lexical state of the brace scanner."""

    OUTSIDE = "outside"
    IN_STRING = "in_string"
    IN_ESCAPE = "in_escape"


@dataclass(frozen=True)
class ScanResult:
    """Where the scan of a JSON object stopped and what was left open.

    Attributes:
        end: Exclusive end index of the last character seen while brace depth was >= 0.
        depth: Number of unclosed `{` at `end` (0 when the object closed normally).
        state: Lexical state at `end`.
    """

    end: int
    depth: int
    state: ScanState


def strip_code_fences(text: str) -> str:
    """Replace every fenced block with its inner content (an unclosed fence runs to the end)."""

    return _CODE_FENCE_RE.sub(lambda m: m.group("body"), text or "").strip()


def scan_object(text: str, start: int) -> ScanResult:
    """Scan a JSON object starting at the `{` at `start`.

    Braces inside string literals are ignored; a backslash escapes the next character, so `\\"`
    never closes a string. The scan stops as soon as the outer object closes.
    """

    state = ScanState.OUTSIDE
    depth = 0
    end = start

    for index in range(start, len(text)):
        char = text[index]

        if state is ScanState.IN_ESCAPE:
            state = ScanState.IN_STRING
        elif state is ScanState.IN_STRING:
            if char == "\\":
                state = ScanState.IN_ESCAPE
            elif char == '"':
                state = ScanState.OUTSIDE
        elif char == '"':
            state = ScanState.IN_STRING
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1

        if depth < 0:
            break

        end = index + 1
        if depth == 0:
            break

    return ScanResult(end=end, depth=depth, state=state)


def _normalize_json_text(text: str) -> str:
    value = text.replace("'", '"')
    value = _BARE_KEY_RE.sub(lambda m: f'{m.group("lead")}"{m.group("key")}":', value)
    return _TRAILING_COMMA_RE.sub(lambda m: m.group("close"), value)


def repair_json_text(raw: str) -> str:
    """Return the first JSON object in `raw`, closed if it was truncated.

    Raises:
        MalformedResponse: `no_json` if the text contains no `{`.
    """

    text = strip_code_fences(raw)
    start = text.find("{")
    if start < 0:
        raise MalformedResponse("no_json", "no JSON found")

    scan = scan_object(text, start)
    candidate = text[start:scan.end]

    if scan.state is ScanState.IN_ESCAPE:
        # A dangling backslash would escape the quote appended below.
        candidate = candidate[:-1]
    if scan.state is not ScanState.OUTSIDE:
        candidate += '"'
    if scan.depth > 0:
        candidate += "}" * scan.depth

    return candidate


def extract_json_object(raw: str) -> dict[str, Any]:
    """Repair `raw` and decode the first JSON object in it.

    The repaired text is decoded as-is first; quote/key/comma normalization is only applied when
    that fails, so apostrophes inside valid strings survive.

    Raises:
        MalformedResponse: `no_json` or `invalid_json`.
    """

    candidate = repair_json_text(raw)

    try:
        decoded = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            decoded = json.loads(_normalize_json_text(candidate))
        except json.JSONDecodeError as exc:
            raise MalformedResponse("invalid_json", "invalid JSON") from exc

    if not isinstance(decoded, dict):
        raise MalformedResponse("invalid_json", "JSON value is not an object")
    return decoded


def intent_from_completion(raw: str) -> Intent:
    """Turn a raw LLM completion into a validated remote `Intent`.

    Raises:
        MalformedResponse: On any extraction, decoding or field validation failure.
    """

    obj = extract_json_object(raw)
    try:
        return intent_from_obj(obj, source="remote")
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "intent"
        raise MalformedResponse("validation", f"{location}: {first['msg']}") from exc
    except ValueError as exc:
        raise MalformedResponse("validation", str(exc)) from exc
