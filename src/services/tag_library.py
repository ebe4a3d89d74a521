"""
Tag library parsing, lookup and strict-mode normalization.

The tag library is a small CSV document in one of two shapes:

- simple: ``標籤,標籤定義`` (tag, definition)
- multilingual: ``原始标签,名称,台灣翻譯,備註,描述`` (en, sc, tc, note, description)

The shape is detected from the first data row. Every tag a model returns is
resolved against the library and rewritten in the requested language; tags
that cannot be traced back to the library are dropped.
"""

import csv
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, Optional

from models.domain import GeneratedTag, TagLanguage
from services.edit_distance import levenshtein_distance, max_fuzzy_distance

logger = logging.getLogger(__name__)

SIMPLE_HEADER = "標籤,標籤定義"
MULTILINGUAL_HEADER = "原始标签,名称,台灣翻譯,備註,描述"
SEPARATOR_PREFIX = ",=="

EN_INDEX = 0
SC_INDEX = 1
TC_INDEX = 2
DESCRIPTION_INDEX = 4

LANGUAGE_INDEX = {
    TagLanguage.EN: EN_INDEX,
    TagLanguage.SC: SC_INDEX,
    TagLanguage.TC: TC_INDEX,
}


def _parse_line(line: str) -> Optional[list[str]]:
    try:
        return [value.strip() for value in next(csv.reader([line]))]
    except (csv.Error, StopIteration) as e:
        logger.debug(f"Skipping malformed tag library line {line!r}: {e}")
        return None


def _data_lines(raw_csv: str) -> list[tuple[str, list[str]]]:
    rows = []
    for line in raw_csv.splitlines()[1:]:
        trimmed = line.strip()
        if not trimmed or trimmed.startswith(SEPARATOR_PREFIX):
            continue
        values = _parse_line(trimmed)
        if values is not None:
            rows.append((trimmed, values))
    return rows


def _is_simple_format(rows: list[tuple[str, list[str]]]) -> bool:
    return bool(rows) and len(rows[0][1]) == 2


class TagLookup:
    """Case-insensitive map from any known tag spelling to its canonical form."""

    def __init__(self, entries: Optional[dict[str, str]] = None):
        self._entries: dict[str, str] = dict(entries or {})

    @classmethod
    def from_csv(cls, raw_csv: str, target_language: TagLanguage = TagLanguage.SC) -> "TagLookup":
        rows = _data_lines(raw_csv or "")
        lookup = cls()
        if _is_simple_format(rows):
            for _, values in rows:
                lookup._register_simple(values)
        else:
            target_index = LANGUAGE_INDEX[TagLanguage(target_language)]
            for _, values in rows:
                lookup._register_multilingual(values, target_index)
        logger.debug(f"Built tag lookup with {len(lookup)} keys ({target_language})")
        return lookup

    def _register(self, key: str, value: str) -> None:
        self._entries[key.lower()] = value

    def _register_simple(self, values: list[str]) -> None:
        if len(values) < 2 or not values[0]:
            return
        tag, definition = values[0], values[1]
        self._register(tag, tag)
        # Models sometimes echo the definition instead of the tag itself.
        if definition:
            self._register(definition, tag)

    def _register_multilingual(self, values: list[str], target_index: int) -> None:
        if len(values) <= DESCRIPTION_INDEX or not values[DESCRIPTION_INDEX]:
            return
        target_value = values[target_index]
        if not target_value:
            return
        for index in (EN_INDEX, SC_INDEX, TC_INDEX):
            variant = values[index]
            if variant:
                self._register(variant, target_value)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, candidate: str) -> bool:
        return candidate.strip().lower() in self._entries

    def resolve(self, candidate: str) -> Optional[str]:
        if not candidate or not candidate.strip():
            return None
        normalized = candidate.strip().lower()

        exact = self._entries.get(normalized)
        if exact is not None:
            return exact

        max_distance = max_fuzzy_distance(len(normalized))
        best_key = None
        best_distance = max_distance + 1
        for key in self._entries:
            if abs(len(key) - len(normalized)) > max_distance:
                continue
            distance = levenshtein_distance(normalized, key)
            if distance < best_distance:
                best_key = key
                best_distance = distance

        if best_key is None:
            logger.debug(f"Tag rejected (not in library): {candidate}")
            return None
        logger.debug(f"Fuzzy match: {candidate!r} -> {best_key!r} (distance {best_distance})")
        return self._entries[best_key]


@lru_cache(maxsize=16)
def build_tag_lookup(raw_csv: str, target_language: TagLanguage = TagLanguage.SC) -> TagLookup:
    return TagLookup.from_csv(raw_csv, TagLanguage(target_language))


def normalize_tags(
    tags: Iterable[GeneratedTag],
    tag_library_csv: str,
    target_language: TagLanguage = TagLanguage.SC,
) -> list[GeneratedTag]:
    """Map tags onto the library in ``target_language``, dropping unknown tags and duplicates."""
    lookup = build_tag_lookup(tag_library_csv, TagLanguage(target_language))

    normalized = []
    seen = set()
    for tag in tags:
        canonical = lookup.resolve(tag.name)
        if canonical is None or canonical in seen:
            continue
        seen.add(canonical)
        normalized.append(GeneratedTag(name=canonical, score=tag.score))
    return normalized


@dataclass(frozen=True)
class TagLibrary:
    """Prompt-ready library text plus tag descriptions keyed by every spelling."""

    text: str = ""
    descriptions: dict[str, str] = field(default_factory=dict)
    is_simple_format: bool = False

    @property
    def is_loaded(self) -> bool:
        return bool(self.text)

    def description_for(self, tag_name: str) -> str:
        return self.descriptions.get(tag_name.strip(), "")


def build_prompt_library(raw_csv: Optional[str]) -> TagLibrary:
    if not raw_csv:
        return TagLibrary()

    rows = _data_lines(raw_csv)
    simple = _is_simple_format(rows)
    relevant_lines = []
    descriptions: dict[str, str] = {}

    for line, values in rows:
        if simple and len(values) >= 2:
            tag, definition = values[0], values[1]
            if not tag:
                continue
            relevant_lines.append(line)
            if definition:
                descriptions[tag] = definition
        elif not simple and len(values) > DESCRIPTION_INDEX:
            relevant_lines.append(line)
            description = values[DESCRIPTION_INDEX]
            if description:
                for index in (EN_INDEX, SC_INDEX, TC_INDEX):
                    if values[index]:
                        descriptions[values[index]] = description

    header = SIMPLE_HEADER if simple else MULTILINGUAL_HEADER
    return TagLibrary(
        text="\n".join([header, *relevant_lines]),
        descriptions=descriptions,
        is_simple_format=simple,
    )


def load_tag_library_csv(path: Optional[str]) -> Optional[str]:
    """Read the tag dataset from disk; returns None when no path is configured or the file is missing or unreadable."""
    if not path:
        return None
    try:
        with open(path, encoding="utf-8-sig") as f:
            raw_csv = f.read()
    except FileNotFoundError:
        logger.warning(f"Tag library not found at {path}")
        return None
    except UnicodeDecodeError as e:
        logger.error(f"Tag library at {path} is not valid UTF-8: {e}")
        return None
    logger.info(f"Loaded tag library from {path} ({len(raw_csv)} chars)")
    return raw_csv
