"""Rules-based fallback parser for inventory commands.

This parser is deterministic and never raises:
    - it recognizes a closed English/Hinglish vocabulary (see `dictionaries`),
    - it always returns an action and a positive quantity,
    - it never invents a product name: if nothing is left after stripping known tokens, the
      product is `None` and the caller must ask the user to clarify.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from src.intent.dictionaries import (
    ALL_ACTION_WORDS,
    CURRENCY_SYMBOLS,
    CURRENCY_WORDS,
    DOZEN,
    DOZEN_SIZE,
    FILLER_WORDS,
    LEADING_ARTICLES,
    UNIT_WORDS,
    WORD_NUMBERS,
    build_alternation,
    find_actions,
    keyword_pattern,
    leading_action,
)
from src.intent.normalize import normalize_text
from src.intent.schema import MAX_PRODUCT_TOKENS, Action, Intent

_NUM = r"(?<![\d.])(?P<num>\d+(?:\.\d+)?)"
_CURRENCY_SYMBOL_GROUP = build_alternation(CURRENCY_SYMBOLS)
_UNIT_GROUP = build_alternation(UNIT_WORDS)

# Priority order matters: the first pattern yielding a finite number wins.
_PRICE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"(?:{_CURRENCY_SYMBOL_GROUP})\s*{_NUM}"),
    re.compile(rf"{_NUM}\s*(?:{build_alternation(CURRENCY_WORDS)})(?!\w)"),
    re.compile(rf"\b(?:to|at|for)\s+{_NUM}"),
    re.compile(rf"{_NUM}\s*(?:{_CURRENCY_SYMBOL_GROUP})"),
)

_TRAILING_NUMBER_RE = re.compile(rf"{_NUM}\s*$")
_NUMBER_RE = re.compile(r"(?<![\d.])\d+(?:\.\d+)?")

_NUMERIC_QUANTITY_RE = re.compile(rf"{_NUM}\s*(?P<unit>{_UNIT_GROUP})?(?!\w)")
_WORD_QUANTITY_RE = re.compile(
    rf"\b(?P<word>{build_alternation(tuple(WORD_NUMBERS))})\b\s*(?P<unit>{_UNIT_GROUP})?(?!\w)"
)
_BARE_DOZEN_RE = re.compile(rf"\b{DOZEN}\b")

_STRIP_WORDS_RE = keyword_pattern(
    CURRENCY_WORDS + FILLER_WORDS + ALL_ACTION_WORDS + UNIT_WORDS + tuple(WORD_NUMBERS)
)
_CURRENCY_SYMBOL_RE = re.compile(_CURRENCY_SYMBOL_GROUP)
# Devanagari is kept so product names typed in Hindi script survive punctuation stripping.
_PUNCTUATION_RE = re.compile(r"[^\w\s\-\u0900-\u097F]+")
_WORD_CHAR_RE = re.compile(r"[^\W_]|[\u0900-\u097F]")


@dataclass(frozen=True)
class FallbackParse:
    """Best-effort interpretation of a command; `product` is `None` when it could not be found."""

    action: Action
    product: str | None
    quantity: float
    price: float | None

    def to_intent(self) -> Intent | None:
        """Promote to a validated `Intent`, or `None` when the product is unknown."""

        if self.product is None:
            return None
        return Intent(
            action=self.action,
            product=self.product,
            quantity=self.quantity,
            price=self.price,
            source="fallback",
        )


def _finite(raw: str) -> float | None:
    value = float(raw)
    return value if math.isfinite(value) else None


def _overlaps(span: tuple[int, int], other: tuple[int, int] | None) -> bool:
    if other is None:
        return False
    return span[0] < other[1] and other[0] < span[1]


def _detect_action(text: str) -> Action:
    """Pick the action; ambiguous or keyword-less commands default to `add`."""

    found = find_actions(text)
    if len(found) == 1:
        return next(iter(found))

    lead = leading_action(text)
    if lead is not None:
        return lead

    return Action.add


def _extract_price(text: str) -> tuple[float | None, tuple[int, int] | None]:
    for pattern in _PRICE_PATTERNS:
        for match in pattern.finditer(text):
            value = _finite(match.group("num"))
            if value is not None:
                return value, match.span("num")

    # "2 kg sugar 200": a bare trailing number is a price only when another number precedes it.
    trailing = _TRAILING_NUMBER_RE.search(text)
    if trailing is not None and len(_NUMBER_RE.findall(text)) > 1:
        value = _finite(trailing.group("num"))
        if value is not None:
            return value, trailing.span("num")

    return None, None


def _extract_quantity(text: str, price_span: tuple[int, int] | None) -> float:
    for match in _NUMERIC_QUANTITY_RE.finditer(text):
        if _overlaps(match.span("num"), price_span):
            continue
        value = _finite(match.group("num"))
        if value is None or value <= 0:
            continue
        if match.group("unit") == DOZEN:
            value *= DOZEN_SIZE
        return value

    word_match = _WORD_QUANTITY_RE.search(text)
    if word_match is not None:
        value = float(WORD_NUMBERS[word_match.group("word")])
        if word_match.group("unit") == DOZEN:
            value *= DOZEN_SIZE
        return value

    if _BARE_DOZEN_RE.search(text):
        return float(DOZEN_SIZE)

    return 1.0


def _extract_product(text: str) -> str | None:
    value = _NUMBER_RE.sub(" ", text)
    value = _CURRENCY_SYMBOL_RE.sub(" ", value)
    value = _STRIP_WORDS_RE.sub(" ", value)
    value = _PUNCTUATION_RE.sub(" ", value)

    tokens = [t for t in value.split() if _WORD_CHAR_RE.search(t)]
    while tokens and tokens[0] in LEADING_ARTICLES:
        tokens.pop(0)

    name = " ".join(tokens[:MAX_PRODUCT_TOKENS])
    return name or None


def parse_fallback(text: str) -> FallbackParse:
    """Parse a free-form command into a best-effort `FallbackParse`.

    Examples:
        "add 5 kg rice" -> add / rice / 5 / None
        "sell 2 dozen eggs for ₹300" -> sell / eggs / 24 / 300
    """

    normalized = normalize_text(text)

    action = _detect_action(normalized)
    price, price_span = _extract_price(normalized)
    quantity = _extract_quantity(normalized, price_span)
    product = _extract_product(normalized)

    return FallbackParse(action=action, product=product, quantity=quantity, price=price)
