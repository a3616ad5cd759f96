"""
Reconcile the rule-based allergen match with the model's allergen list.

The model's list is authoritative when enrichment succeeded, since it can
recognise synonyms and translations. When enrichment was skipped or failed,
the rule-based match decides. "The model found nothing" (Empty) and "the model
was unavailable" (EnrichmentUnavailable) are always distinct outcomes.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from labelscan.services.allergen_matcher import UserAllergyProfile, normalize_allergies
from labelscan.services.insight_service import Degraded, InsightResult, Succeeded


@dataclass(frozen=True)
class NotConfigured:
    """The user has no allergens configured; nothing can be flagged."""

    kind = "not_configured"

    @property
    def hits(self) -> List[str]:
        return []


@dataclass(frozen=True)
class Empty:
    """Allergens are configured and none were found."""

    kind = "empty"

    @property
    def hits(self) -> List[str]:
        return []


@dataclass(frozen=True)
class Flagged:
    allergens: List[str]
    kind = "flagged"

    @property
    def hits(self) -> List[str]:
        return list(self.allergens)


@dataclass(frozen=True)
class EnrichmentUnavailable:
    """
    Enrichment failed; the rule-based hits stand in.

    The model asserted nothing for this scan, so `llm_allergens` is always
    empty; the flagged/clear decision comes from `fallback_hits`.
    """

    fallback_hits: List[str]
    reason: str
    llm_allergens: List[str] = field(default_factory=list)
    kind = "enrichment_unavailable"

    @property
    def hits(self) -> List[str]:
        return list(self.fallback_hits)


AllergenDetermination = Union[NotConfigured, Empty, Flagged, EnrichmentUnavailable]


def is_flagged(determination: AllergenDetermination) -> bool:
    return len(determination.hits) > 0


def reconcile(
    profile: UserAllergyProfile,
    rule_hits: List[str],
    insight: InsightResult,
) -> AllergenDetermination:
    """Produce the authoritative determination for one scan."""
    if not profile.is_configured:
        return NotConfigured()

    if isinstance(insight, Succeeded):
        llm_hits = normalize_allergies(insight.payload.identified_user_allergens)
        return Flagged(allergens=llm_hits) if llm_hits else Empty()

    if isinstance(insight, Degraded):
        return EnrichmentUnavailable(fallback_hits=list(rule_hits), reason=insight.reason)

    # Not requested / still pending: the literal match is all we have
    return Flagged(allergens=list(rule_hits)) if rule_hits else Empty()


# =============================================================================
# UI ALERT CONTENT
# =============================================================================


@dataclass(frozen=True)
class AlertContent:
    level: str  # sign_in_required | not_configured | flagged | clear | unavailable
    title: str
    message: str
    details: Optional[str] = None
    should_alert: bool = False


def describe_determination(
    determination: AllergenDetermination, identity: Optional[str]
) -> AlertContent:
    """Map a determination to the result dialog shown after a scan."""
    if identity is None:
        return AlertContent(
            level="sign_in_required",
            title="Sign In Required",
            message="Please sign in to use allergen check and save history.",
        )

    if isinstance(determination, NotConfigured):
        return AlertContent(
            level="not_configured",
            title="Allergies Not Set",
            message="Configure allergies in your profile for accurate checks.",
            details="Go to Profile > Edit Profile to set your allergies.",
        )

    hits = determination.hits
    if hits:
        plural = "s" if len(hits) > 1 else ""
        source = (
            "found by text matching (insights unavailable)"
            if isinstance(determination, EnrichmentUnavailable)
            else "based on your profile"
        )
        return AlertContent(
            level="flagged",
            title=f"Allergen{plural} Detected! ({len(hits)})",
            message=f"Potential allergens {source}:",
            details=", ".join(hits),
            should_alert=True,
        )

    if isinstance(determination, EnrichmentUnavailable):
        return AlertContent(
            level="unavailable",
            title="No Allergens Matched",
            message="Your allergens were not found in the text, but detailed insights are unavailable.",
            details="Check the label yourself for other names of your allergens.",
        )

    return AlertContent(
        level="clear",
        title="No Configured Allergens Found",
        message="Your configured allergens were not found in the scanned text.",
        details="Always double-check labels if you have severe allergies.",
    )
