"""
Cluster naming.

A cluster is labelled by scoring its member names against an ordered keyword
table; when nothing matches, the two most frequent long tokens are used.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

GENERAL_CATEGORY = "General Category"

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")


@dataclass(frozen=True)
class Category:
    """One taxonomy entry: key, display label and keyword substrings."""

    key: str
    keywords: Tuple[str, ...]
    label: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or capitalize(self.key)


class CategoryTable:
    """
    Ordered category taxonomy.

    Declaration order is significant: on equal scores the category declared
    first wins.
    """

    def __init__(self, categories: Iterable[Category]):
        self.categories: Tuple[Category, ...] = tuple(categories)

    def __iter__(self):
        return iter(self.categories)

    def __len__(self) -> int:
        return len(self.categories)

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "CategoryTable":
        """Build a table from [{"key", "keywords", "label"}] mappings."""
        return cls(
            Category(
                key=record["key"],
                keywords=tuple(record.get("keywords", ())),
                label=record.get("label"),
            )
            for record in records
        )


DEFAULT_CATEGORY_TABLE = CategoryTable([
    Category(
        key="medical",
        label="Medical / Healthcare",
        keywords=(
            "hernia", "arthritis", "transplant", "orthopedic", "orthopaedic",
            "implant", "orthosis", "orthotics", "organ", "surgery", "disease",
            "health", "clinic", "hospital", "therapy", "physio",
        ),
    ),
    Category(
        key="finance",
        label="Finance / Payroll",
        keywords=(
            "payroll", "salary", "compensation", "dividend", "benefits",
            "finance", "financial", "account", "budget", "billing",
        ),
    ),
    Category(
        key="management",
        label="Management",
        keywords=(
            "management", "admin", "administration", "supervision",
            "planning", "operations", "organizing", "executive",
        ),
    ),
    Category(
        key="construction",
        label="Construction / Materials",
        keywords=(
            "building", "construction", "structure", "material", "cement",
            "hardware", "tools", "fabrication",
        ),
    ),
    Category(
        key="technology",
        label="Technology & Systems",
        keywords=(
            "software", "system", "network", "tech", "cloud", "data", "ai",
            "algorithm", "digital", "application",
        ),
    ),
    Category(
        key="creative",
        label="Creative / Design",
        keywords=(
            "creative", "design", "art", "drawing", "graphics", "direction",
            "illustration", "content", "media",
        ),
    ),
    Category(
        key="education",
        label="Education & Training",
        keywords=("training", "learning", "course", "education", "teaching", "study"),
    ),
    Category(
        key="legal",
        label="Legal & Compliance",
        keywords=("law", "legal", "compliance", "regulation", "contract"),
    ),
])


def capitalize(word: str) -> str:
    """Upper-case the first character only."""
    return word[:1].upper() + word[1:]


def tokenize(name: str, min_length: int) -> List[str]:
    """
    Lowercase, replace non [a-z0-9 whitespace] characters with spaces, split.

    Args:
        name: Display name
        min_length: Tokens must be strictly longer than this

    Returns:
        Tokens in order of appearance
    """
    cleaned = _NON_ALPHANUMERIC.sub(" ", name.lower())
    return [token for token in cleaned.split() if len(token) > min_length]


class ClusterNamer:
    """Assigns a human-readable label to a cluster from its member names."""

    def __init__(self, table: Optional[CategoryTable] = None):
        self.table = table if table is not None else DEFAULT_CATEGORY_TABLE

    def score(self, member_names: Sequence[str]) -> List[Tuple[Category, int]]:
        """Keyword hit count per category, in declaration order."""
        scores = [0] * len(self.table)
        for name in member_names:
            for token in tokenize(name, 2):
                for position, category in enumerate(self.table):
                    if any(keyword in token for keyword in category.keywords):
                        scores[position] += 1
        return list(zip(self.table, scores))

    def name(self, member_names: Sequence[str]) -> str:
        """
        Label for a cluster.

        Args:
            member_names: Display names of the cluster members

        Returns:
            Category label, or the token-frequency fallback name
        """
        best: Optional[Category] = None
        best_score = 0
        for category, score in self.score(member_names):
            if score > best_score:
                best, best_score = category, score

        if best is None:
            return self.fallback_name(member_names)

        return best.display_name

    @staticmethod
    def fallback_name(member_names: Sequence[str]) -> str:
        """
        Name from the two most frequent tokens longer than 3 characters.

        Equal counts are ordered alphabetically, so the result only depends
        on the multiset of names.
        """
        frequency = Counter(
            token for name in member_names for token in tokenize(name, 3)
        )
        top = sorted(frequency.items(), key=lambda entry: (-entry[1], entry[0]))[:2]

        if not top:
            return GENERAL_CATEGORY
        if len(top) == 1:
            return capitalize(top[0][0])
        return f"{capitalize(top[0][0])} & {capitalize(top[1][0])}"
