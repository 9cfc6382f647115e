"""English/Hinglish vocabularies for the fallback command parser.

The lists are deliberately small and closed: anything not listed here is treated as part of the
product name. Multi-word phrases (e.g. "bech do") are matched before their single-word prefixes.
"""

from __future__ import annotations

import re

from src.intent.schema import Action

ACTION_KEYWORDS: dict[Action, tuple[str, ...]] = {
    Action.sell: ("sell", "sold", "sale", "bech", "becho", "bech do", "bechna", "becha", "bika"),
    Action.add: (
        "add",
        "add karo",
        "add kar",
        "purchase",
        "purchased",
        "buy",
        "bought",
        "kharid",
        "kharido",
        "kharida",
        "restock",
        "stock",
    ),
}

# Currency names that may follow a price ("200 rupees", "200 rs").
CURRENCY_WORDS: tuple[str, ...] = ("rupees", "rupee", "rupaye", "rs.", "rs", "inr")

CURRENCY_SYMBOLS: tuple[str, ...] = ("₹",)

# Prepositions and Hinglish postpositions that never belong to a product name.
FILLER_WORDS: tuple[str, ...] = (
    "at",
    "for",
    "to",
    "per",
    "each",
    "me",
    "in",
    "ka",
    "ki",
    "ke",
    "price",
)

# Words stripped only from the front of the product residue ("of the rice" -> "rice").
LEADING_ARTICLES: tuple[str, ...] = ("of", "the", "a", "an")

UNIT_WORDS: tuple[str, ...] = (
    "kilograms",
    "kilogram",
    "kilos",
    "kilo",
    "kgs",
    "kg",
    "grams",
    "gram",
    "gm",
    "g",
    "pieces",
    "piece",
    "pcs",
    "pc",
    "packets",
    "packet",
    "dozen",
    "litres",
    "litre",
    "liters",
    "liter",
    "ltr",
    "ml",
)

DOZEN = "dozen"
DOZEN_SIZE = 12

WORD_NUMBERS: dict[str, int] = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}


def build_alternation(phrases: tuple[str, ...] | list[str]) -> str:
    """Build a regex alternation, longest phrase first ("bech do" before "bech")."""

    parts = sorted(set(phrases), key=lambda p: (-len(p), p))
    return "|".join(re.escape(p) for p in parts)


def keyword_pattern(phrases: tuple[str, ...] | list[str]) -> re.Pattern[str]:
    """Compile a whole-word matcher for any of `phrases`."""

    return re.compile(rf"(?<!\w)(?:{build_alternation(phrases)})(?!\w)")


_ACTION_PATTERNS: dict[Action, re.Pattern[str]] = {
    action: keyword_pattern(words) for action, words in ACTION_KEYWORDS.items()
}

ALL_ACTION_WORDS: tuple[str, ...] = tuple(w for words in ACTION_KEYWORDS.values() for w in words)


def find_actions(text: str) -> set[Action]:
    """Return every action whose keyword list matches somewhere in `text`."""

    return {action for action, pattern in _ACTION_PATTERNS.items() if pattern.search(text or "")}


def leading_action(text: str) -> Action | None:
    """Return the action whose keyword the trimmed text starts with, if any."""

    value = (text or "").strip()
    for action, pattern in _ACTION_PATTERNS.items():
        match = pattern.match(value)
        if match:
            return action
    return None
