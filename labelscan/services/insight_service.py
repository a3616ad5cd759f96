"""
Claude integration for food label enrichment.

Given OCR text and the user's allergen tokens, asks the model for a health
summary, tips, auxiliary opinions (brand/origin, halal status, age notes) and
the list of the user's allergens it believes are present. The allergen list
may catch synonyms and translations the literal matcher cannot.

Enrichment is optional: `enrich()` never raises for service failures. It
returns a `Degraded` result instead, and the pipeline falls back to the
rule-based match.
"""

import asyncio
import json
import logging
import random
import re
from dataclasses import dataclass
from functools import wraps
from typing import Optional, Union

import anthropic
import httpx
from anthropic import AsyncAnthropic
from pydantic import BaseModel, TypeAdapter, ValidationError

from labelscan.config import settings
from labelscan.services.errors import (
    MalformedResponseError,
    RateLimitError,
    ServiceUnavailableError,
    TransientExternalFailure,
)
from labelscan.services.insight_schemas import LabelInsightSchema
from labelscan.services.prompts import (
    LABEL_INSIGHT_SYSTEM_PROMPT,
    build_label_insight_prompt,
)

logger = logging.getLogger(__name__)


def _strip_markdown_json(text: str) -> str:
    """Strip markdown code block wrappers from JSON text."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def retry_on_connection_error(max_attempts=2, base_delay=0.5):
    """
    Retry decorator for API calls that may fail due to transient network issues.

    Args:
        max_attempts: Maximum attempts (default 2)
        base_delay: Base delay in seconds for exponential backoff (default 0.5)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except anthropic.APIConnectionError as e:
                    last_exception = e

                    if attempt < max_attempts - 1:
                        delay = base_delay * (2**attempt)
                        jitter = delay * 0.1 * (2 * random.random() - 1)
                        sleep_time = delay + jitter

                        logger.warning(
                            "Connection error on attempt %d/%d, retrying in %.1fs...",
                            attempt + 1,
                            max_attempts,
                            sleep_time,
                        )
                        await asyncio.sleep(sleep_time)
                    else:
                        logger.error("All %d attempts failed", max_attempts)

            raise ServiceUnavailableError(
                "AI service temporarily unavailable after retries"
            ) from last_exception

        return wrapper

    return decorator


# =============================================================================
# INSIGHT RESULT STATES
# =============================================================================


@dataclass(frozen=True)
class NotRequested:
    """Enrichment was skipped (disabled, or nothing to analyze)."""

    status = "not_requested"


@dataclass(frozen=True)
class Pending:
    """Enrichment call is in flight."""

    status = "pending"


@dataclass(frozen=True)
class Succeeded:
    """Enrichment returned a payload that validated against the schema."""

    payload: LabelInsightSchema
    status = "succeeded"


@dataclass(frozen=True)
class Degraded:
    """
    Enrichment was unavailable for this scan.

    reason is one of: "timeout", "unavailable", "rate_limited", "malformed",
    "request_error". raw_response holds the unparseable payload for the
    malformed case so it can still be shown to the user.
    """

    reason: str
    message: str
    raw_response: Optional[str] = None
    status = "degraded"


InsightResult = Union[NotRequested, Pending, Succeeded, Degraded]


# =============================================================================
# SERVICE
# =============================================================================


class InsightService:
    """Label enrichment through the Anthropic Messages API."""

    def __init__(self, client: Optional[AsyncAnthropic] = None):
        if client is None:
            timeout = httpx.Timeout(
                timeout=settings.insight_timeout,
                connect=settings.insight_connect_timeout,
            )
            client = AsyncAnthropic(
                api_key=settings.anthropic_api_key, timeout=timeout, max_retries=0
            )
        self.client = client
        self.model = settings.insight_model

    async def _call_with_schema_retry(
        self,
        messages: list[dict],
        schema_class: type[BaseModel],
        request_params: dict,
        max_retries: int = 1,
        prefill: Optional[str] = "{",
    ) -> tuple[dict, str]:
        """
        Call Claude with JSON schema validation and conversational retry.

        On schema failure: appends the bad response + error feedback to messages
        and re-calls with the full conversation so the model can self-correct.

        Returns:
            (validated_dict, raw_response_text)

        Raises:
            MalformedResponseError: If every attempt fails validation
        """
        raw_text = ""
        error_msg = ""

        for attempt in range(1 + max_retries):
            call_messages = list(messages)
            if prefill:
                call_messages.append({"role": "assistant", "content": prefill})

            response = await self.client.messages.create(
                messages=call_messages,
                **request_params,
            )

            response_text = ""
            for block in response.content:
                if hasattr(block, "text"):
                    response_text += block.text

            raw_text = response_text.strip()
            if not raw_text:
                error_msg = "empty response"
                if attempt < max_retries:
                    messages.append({"role": "assistant", "content": "(empty response)"})
                    messages.append(
                        {
                            "role": "user",
                            "content": "Your response contained no text. Please respond with valid JSON.",
                        }
                    )
                    continue
                break

            json_str = (prefill or "") + raw_text
            json_str = _strip_markdown_json(json_str)
            json_str = _fix_trailing_commas(json_str)

            try:
                parsed = json.loads(json_str)
                validated = TypeAdapter(schema_class).validate_python(parsed)
                return validated.model_dump(), (prefill or "") + raw_text
            except (json.JSONDecodeError, ValidationError) as e:
                error_msg = str(e)
                logger.warning(
                    "AI response schema validation failed (attempt %d/%d) for %s: %s",
                    attempt + 1,
                    1 + max_retries,
                    schema_class.__name__,
                    error_msg,
                )

                if attempt < max_retries:
                    messages.append(
                        {"role": "assistant", "content": (prefill or "") + raw_text}
                    )
                    messages.append(
                        {
                            "role": "user",
                            "content": (
                                f"Your response had a schema error:\n{error_msg}\n\n"
                                f"Please fix and return valid JSON matching the required schema."
                            ),
                        }
                    )

        raise MalformedResponseError(
            f"AI response failed schema validation after {1 + max_retries} attempts: {error_msg}",
            raw_response=((prefill or "") + raw_text) if raw_text else None,
        )

    @retry_on_connection_error()
    async def _request_label_insight(self, messages: list[dict]) -> dict:
        validated, _raw_text = await self._call_with_schema_retry(
            messages=messages,
            schema_class=LabelInsightSchema,
            request_params={
                "model": self.model,
                "max_tokens": settings.insight_max_tokens,
                "system": LABEL_INSIGHT_SYSTEM_PROMPT,
            },
            max_retries=settings.insight_schema_retries,
        )
        return validated

    async def fetch_label_insight(
        self, scanned_text: str, allergy_tokens: list[str]
    ) -> LabelInsightSchema:
        """
        Ask the model for a structured opinion on a scanned label.

        Raises:
            ServiceUnavailableError: network failure or 5xx
            RateLimitError: too many requests
            MalformedResponseError: payload unparseable after retries
            ValueError: request rejected (4xx)
        """
        messages = [
            {
                "role": "user",
                "content": build_label_insight_prompt(
                    scanned_text, allergy_tokens, settings.insight_secondary_language
                ),
            }
        ]

        try:
            validated = await self._request_label_insight(messages)
        except anthropic.RateLimitError as e:
            raise RateLimitError(
                "Too many requests, please try again in 1 minute"
            ) from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("AI service error") from e
            raise ValueError(f"Request error: {e.message}") from e

        return LabelInsightSchema(**validated)

    async def enrich(
        self,
        scanned_text: str,
        allergy_tokens: list[str],
        timeout: Optional[float] = None,
    ) -> InsightResult:
        """
        Fetch enrichment for a scan, converting every failure into `Degraded`.

        The whole call (retries included) is bounded by `timeout`, which
        defaults to settings.insight_timeout.
        """
        if not settings.insight_enabled or not scanned_text.strip():
            return NotRequested()

        timeout = settings.insight_timeout if timeout is None else timeout
        try:
            payload = await asyncio.wait_for(
                self.fetch_label_insight(scanned_text, allergy_tokens), timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Label enrichment timed out after %.1fs", timeout)
            return Degraded(reason="timeout", message="Insight request timed out")
        except MalformedResponseError as e:
            logger.warning("Label enrichment returned a malformed payload: %s", e)
            return Degraded(
                reason="malformed",
                message="Could not parse insights",
                raw_response=e.raw_response,
            )
        except RateLimitError as e:
            logger.warning("Label enrichment rate limited: %s", e)
            return Degraded(reason="rate_limited", message=str(e))
        except TransientExternalFailure as e:
            logger.warning("Label enrichment unavailable: %s", e)
            return Degraded(reason="unavailable", message=str(e))
        except ValueError as e:
            logger.error("Label enrichment request rejected: %s", e)
            return Degraded(reason="request_error", message=str(e))

        return Succeeded(payload=payload)
