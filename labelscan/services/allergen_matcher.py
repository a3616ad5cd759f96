"""
Rule-based allergen matching.

Pure functions over scanned text and a user's allergy configuration. The same
matcher runs at scan time and when rendering stored history, so hits can be
re-derived if the profile changes after a scan.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

RawAllergies = Union[str, Iterable[str], None]


def normalize_allergies(raw: RawAllergies) -> List[str]:
    """
    Collapse a comma-delimited string or a list into allergen tokens.

    Tokens are trimmed and lowercased, empties dropped, duplicates removed
    (first occurrence wins). Both representations yield the same tokens:

        normalize_allergies("Milk, soy,,") == normalize_allergies(["milk", " SOY"])
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = raw.split(",")
    else:
        parts = [str(item) for item in raw if item is not None]

    tokens: List[str] = []
    for part in parts:
        token = part.strip().lower()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


@dataclass(frozen=True)
class UserAllergyProfile:
    """Allergy configuration for the current session (identity None = anonymous)."""

    identity: Optional[str] = None
    tokens: tuple = field(default_factory=tuple)

    @classmethod
    def from_raw(
        cls, identity: Optional[str], raw: RawAllergies
    ) -> "UserAllergyProfile":
        return cls(identity=identity, tokens=tuple(normalize_allergies(raw)))

    @classmethod
    def anonymous(cls) -> "UserAllergyProfile":
        return cls()

    @property
    def is_configured(self) -> bool:
        return len(self.tokens) > 0

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


def match_allergens(text: Optional[str], tokens: Iterable[str]) -> List[str]:
    """
    Return the tokens whose literal text appears anywhere in `text`.

    Case-insensitive substring test; result keeps the order of `tokens`.
    Empty text or an empty token set gives an empty list.
    """
    if not text:
        return []
    haystack = text.lower()
    return [token for token in tokens if token and token.lower() in haystack]


def rematch(text: Optional[str], profile: UserAllergyProfile) -> List[str]:
    """Re-derive hits for stored text against the current profile."""
    if not profile.is_configured:
        return []
    return match_allergens(text, profile.tokens)


# =============================================================================
# HIGHLIGHTING
# =============================================================================


@dataclass(frozen=True)
class HighlightSpan:
    text: str
    is_match: bool


def highlight(text: Optional[str], tokens: Iterable[str]) -> List[HighlightSpan]:
    """
    Split text into spans, marking case-insensitive occurrences of `tokens`.

    Tokens come from user data, so every one is escaped before it reaches
    the pattern. Longer tokens are tried first so "peanut oil" wins over
    "peanut" when both are configured.
    """
    if not text:
        return []
    cleaned = sorted({t.lower() for t in tokens if t}, key=len, reverse=True)
    if not cleaned:
        return [HighlightSpan(text=text, is_match=False)]

    pattern = re.compile(
        "(" + "|".join(re.escape(token) for token in cleaned) + ")", re.IGNORECASE
    )
    spans = []
    # split() with one group alternates unmatched and matched parts
    for index, part in enumerate(pattern.split(text)):
        if not part:
            continue
        spans.append(HighlightSpan(text=part, is_match=index % 2 == 1))
    return spans
