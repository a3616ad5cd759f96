"""
Pydantic models for the structured JSON returned by the enrichment model.

Used by _call_with_schema_retry() in insight_service.py for validation + retry.
Every field is optional on the wire: the model may leave out sections it has
no opinion on, and missing lists default to empty.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LabelInsightSchema(BaseModel):
    health_summary: Optional[str] = None
    identified_user_allergens: list[str] = Field(default_factory=list)
    actionable_health_tips: list[str] = Field(default_factory=list)
    boycott_suggestion: Optional[str] = None
    halal_status: Optional[str] = None
    age_factor_notes: Optional[str] = None

    @field_validator("identified_user_allergens", "actionable_health_tips", mode="before")
    @classmethod
    def _null_list_to_empty(cls, value):
        return [] if value is None else value
