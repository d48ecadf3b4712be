"""Face matching through an external multimodal model."""

import asyncio
import base64
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, ValidationError

from eventlens.domain.errors import OracleError

MATCH_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "matches": {
            "type": "array",
            "items": {"type": "integer", "minimum": 0},
        }
    },
    "required": ["matches"],
    "additionalProperties": False,
}

_logger = logging.getLogger(__name__)


class MatchClient(Protocol):
    """Interface for the external matching model."""

    async def find_matches(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        reference_data_urls: list[str],
        candidate_data_urls: list[str],
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Return the raw structured match payload."""


class MatchResult(BaseModel):
    """Structured output of a match call."""

    matches: list[int]


@dataclass
class MatchService:
    """Service that prepares match prompts and validates results."""

    client: MatchClient
    model: str
    reasoning_effort: str | None
    store: bool
    timeout_seconds: float = 60.0
    retry_attempts: int = 0
    retry_delay_seconds: float = 0.5

    async def find_matches(
        self, references: Sequence[bytes], candidates: Sequence[bytes]
    ) -> list[int]:
        """Return indices of the candidates that show the reference person."""
        if not candidates:
            return []
        prompt = build_match_prompt(len(references), len(candidates))
        reference_urls = [to_data_url(image) for image in references]
        candidate_urls = [to_data_url(image) for image in candidates]

        raw = await self._call_with_retry(reference_urls, candidate_urls, prompt)
        try:
            result = MatchResult.model_validate(raw)
        except ValidationError as exc:
            raise OracleError("Matching service returned a bad payload") from exc
        return _validate_indices(result.matches, len(candidates))

    async def _call_with_retry(
        self, reference_urls: list[str], candidate_urls: list[str], prompt: str
    ) -> dict[str, object]:
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(
                    self.client.find_matches(
                        model=self.model,
                        reasoning_effort=self.reasoning_effort,
                        store=self.store,
                        reference_data_urls=reference_urls,
                        candidate_data_urls=candidate_urls,
                        schema=MATCH_SCHEMA,
                        prompt=prompt,
                    ),
                    timeout=self.timeout_seconds,
                )
            except Exception as exc:
                attempt += 1
                _logger.warning(
                    "Match call failed (attempt %s/%s): %s",
                    attempt,
                    self.retry_attempts + 1,
                    exc,
                )
                if attempt > self.retry_attempts:
                    if isinstance(exc, TimeoutError):
                        raise OracleError("Matching service timed out") from exc
                    raise OracleError("Matching service unavailable") from exc
                await asyncio.sleep(self.retry_delay_seconds)


def build_match_prompt(reference_count: int, candidate_count: int) -> str:
    """Describe the image layout and the expected JSON answer."""
    last_index = candidate_count - 1
    return (
        f"The first {reference_count} images are the REFERENCE PERSON "
        "(different angles: front, sides, expressions). "
        f"The next {candidate_count} images are CANDIDATE EVENT PHOTOS, "
        f"indexed 0 to {last_index}. "
        "Identify which candidate images contain the reference person. "
        "Use all reference angles; the person may be far away, in a group "
        "or in different lighting. Ignore background people. "
        'Return JSON {"matches": [...]} with the matching candidate indices '
        f"(0 to {last_index}), or an empty list if none match."
    )


def _validate_indices(indices: list[int], candidate_count: int) -> list[int]:
    """Reject out-of-range indices and drop duplicates, keeping order."""
    seen: set[int] = set()
    ordered: list[int] = []
    for index in indices:
        if not 0 <= index < candidate_count:
            raise OracleError(
                f"Matching service returned index {index} for "
                f"{candidate_count} candidates"
            )
        if index not in seen:
            seen.add(index)
            ordered.append(index)
    return ordered


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
