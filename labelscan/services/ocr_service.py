"""
Text extraction from label images via the Google Vision REST API.

A response without text is a normal outcome (`None`), not an error.
"""

import logging
from typing import Optional

import httpx

from labelscan.config import settings
from labelscan.services.errors import OcrError, RateLimitError, ServiceUnavailableError

logger = logging.getLogger(__name__)


class OcrService:
    """Thin async client for Vision TEXT_DETECTION."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._client = http_client
        self.endpoint = settings.ocr_endpoint
        self.api_key = settings.google_vision_api_key

    def _build_request(self, image_base64: str) -> dict:
        return {
            "requests": [
                {
                    "image": {"content": image_base64},
                    "features": [{"type": "TEXT_DETECTION"}],
                }
            ]
        }

    async def _post(self, payload: dict) -> httpx.Response:
        params = {"key": self.api_key}
        if self._client is not None:
            return await self._client.post(self.endpoint, params=params, json=payload)
        async with httpx.AsyncClient(timeout=settings.ocr_timeout) as client:
            return await client.post(self.endpoint, params=params, json=payload)

    async def extract_text(self, image_base64: str) -> Optional[str]:
        """
        Run text detection on a base64-encoded image.

        Returns:
            The full detected text, or None when the image has no text.

        Raises:
            ServiceUnavailableError: network failure, timeout or 5xx
            RateLimitError: HTTP 429
            OcrError: request rejected or Vision returned an error object
        """
        try:
            response = await self._post(self._build_request(image_base64))
        except httpx.TimeoutException as e:
            raise ServiceUnavailableError("OCR service timed out") from e
        except httpx.TransportError as e:
            raise ServiceUnavailableError("OCR service unreachable") from e

        if response.status_code == 429:
            raise RateLimitError("OCR rate limit exceeded")
        if response.status_code >= 500:
            raise ServiceUnavailableError(f"OCR service error: {response.status_code}")
        if response.status_code >= 400:
            raise OcrError(
                f"OCR request rejected: {response.status_code} {self._error_message(response)}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise OcrError("OCR response was not valid JSON") from e

        if not isinstance(data, dict):
            raise OcrError("Unexpected OCR response shape")
        results = data.get("responses", [])
        if not isinstance(results, list):
            raise OcrError("Unexpected OCR response shape")
        first = (results[0] if results else None) or {}
        if not isinstance(first, dict):
            raise OcrError("Unexpected OCR response shape")

        error = first.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise OcrError(f"OCR failed: {message or 'unknown error'}")

        annotation = first.get("fullTextAnnotation") or {}
        if not isinstance(annotation, dict):
            raise OcrError("Unexpected OCR response shape")
        text = annotation.get("text")
        if text is not None and not isinstance(text, str):
            raise OcrError("Unexpected OCR response shape")
        if not text or not text.strip():
            logger.info("OCR found no text in image")
            return None
        return text

    def _error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200]
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict):
            return str(error.get("message", ""))
        return str(error or "")
