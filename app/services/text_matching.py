from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
import re
from typing import Generic, TypeVar
import unicodedata

T = TypeVar("T")

_PUNCTUATION_PATTERN = re.compile(r"[,.!?;:'\"()\[\]{}]")
_MAX_TITLE_LENGTH = 80


@dataclass(frozen=True)
class ExtractionRule(Generic[T]):
    """One row of an ordered extraction table.

    ``build`` turns a regex match into a value, or ``None`` to let the next
    row try.
    """

    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], T | None]


def first_match(rules: Sequence[ExtractionRule[T]], text: str | None) -> T | None:
    if not text:
        return None
    for rule in rules:
        match = rule.pattern.search(text)
        if not match:
            continue
        value = rule.build(match)
        if value is not None:
            return value
    return None


def first_source_match(
    rules: Sequence[ExtractionRule[T]],
    sources: Iterable[str | None],
) -> T | None:
    for source in sources:
        value = first_match(rules, source)
        if value is not None:
            return value
    return None


def keyword_rule(pattern: str, value: T) -> ExtractionRule[T]:
    return ExtractionRule(
        pattern=re.compile(pattern, re.IGNORECASE),
        build=lambda _match: value,
    )


def group_rule(pattern: str, group: str | int = 1) -> ExtractionRule[str]:
    return ExtractionRule(
        pattern=re.compile(pattern, re.IGNORECASE),
        build=lambda match: clean_optional_text(match.group(group)),
    )


def normalize_for_matching(text: str) -> str:
    lowered = text.lower().strip()
    decomposed = unicodedata.normalize("NFD", lowered)
    without_accents = "".join(
        char for char in decomposed if unicodedata.category(char) != "Mn"
    )
    return re.sub(r"\s+", " ", without_accents)


def normalize_message(text: str) -> str:
    return normalize_for_matching(_PUNCTUATION_PATTERN.sub(" ", text))


def clean_optional_text(value: str | None) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip().strip("'\"“”‘’").strip()
    return cleaned or None


def capitalize_first(text: str) -> str:
    if not text:
        return ""
    return text[0].upper() + text[1:]


def format_title(raw_title: str) -> str:
    title = capitalize_first(" ".join(raw_title.split()))
    if len(title) > _MAX_TITLE_LENGTH:
        title = title[: _MAX_TITLE_LENGTH - 3] + "..."
    return title


def contains_keyword(keywords: Iterable[str], normalized: str) -> bool:
    """Whole-word containment, or every word of a multi-word phrase as a token."""
    padded = f" {normalized} "
    tokens = set(normalized.split())
    for keyword in keywords:
        if f" {keyword} " in padded:
            return True
        parts = keyword.split()
        if len(parts) > 1 and all(part in tokens for part in parts):
            return True
    return False
