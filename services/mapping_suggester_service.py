"""
AI column mapping suggester.

Asks Claude to map spreadsheet headers to catalog fields. The model answers
in free text, so the JSON object is dug out of the response and checked
against the headers and field ids that were sent. Transport errors,
unparseable answers and invalid mappings are all retried; when every
attempt fails the caller gets MappingSuggestionFailedError and falls back
to manual mapping.
"""

import asyncio
import json
import re
from typing import Any, Optional
import structlog

import anthropic

from config import settings
from exceptions import MappingSuggestionFailedError
from models.candidate import FieldDefinition
from models.mapping import ColumnMapping
from utils.text_utils import cell_to_text

logger = structlog.get_logger(__name__)

MAX_SAMPLE_VALUES = 3

_FENCED_JSON = re.compile(r"```json\s*\n(.*?)\n\s*```", re.DOTALL)
_FENCED_PLAIN = re.compile(r"```\s*\n(.*?)\n\s*```", re.DOTALL)


class SuggestionFormatError(ValueError):
    """Response did not contain a usable mapping."""
    pass


def column_samples(
    headers: list[str],
    sample_rows: list[list[Any]],
    limit: int = MAX_SAMPLE_VALUES,
) -> dict[str, list[str]]:
    """Up to `limit` non-blank sample values per column."""
    samples: dict[str, list[str]] = {}
    for idx, header in enumerate(headers):
        values = []
        for row in sample_rows:
            value = cell_to_text(row[idx]) if idx < len(row) else ""
            if value:
                values.append(value)
            if len(values) >= limit:
                break
        samples[header] = values
    return samples


def build_mapping_prompt(
    headers: list[str],
    sample_rows: list[list[Any]],
    fields: list[FieldDefinition],
) -> str:
    """
    Build the instruction sent to the model.

    Embeds the headers, a few sample values per column and the target
    fields, and asks for a strict JSON object.
    """
    samples = column_samples(headers, sample_rows)
    sample_lines = "\n".join(
        f"{header}: {', '.join(samples[header])}" for header in headers
    )
    field_lines = "\n".join(
        f"- {f.id}: {f.label}{' (Required)' if f.required else ''}" for f in fields
    )

    return f"""I have a spreadsheet with the following columns: {', '.join(headers)}

Here are some sample values for each column:
{sample_lines}

I need to map these columns to my Talent Management System which has the following fields (field ID: description):
{field_lines}

Map my spreadsheet columns to the system fields. Return your answer ONLY as a valid JSON object where keys are my column names exactly as written above and values are the corresponding system field IDs. If a column doesn't map to any system field, assign null as its value.

The response should be in this format exactly:
{{
  "Column Name 1": "field_id_1",
  "Column Name 2": "field_id_2",
  "Column Name 3": null
}}"""


def extract_json_object(text: str) -> dict:
    """
    Pull the mapping object out of a free-text response.

    Tries a ```json fenced block, then a plain ``` block, then the first
    bare {...} span in the text.

    Raises:
        SuggestionFormatError: No JSON object could be decoded
    """
    if not text:
        raise SuggestionFormatError("Empty response from AI service")

    match = _FENCED_JSON.search(text) or _FENCED_PLAIN.search(text)
    if match:
        candidate = match.group(1).strip()
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            raise SuggestionFormatError(f"Invalid JSON in code block: {e}") from e
    else:
        start = text.find("{")
        if start == -1:
            raise SuggestionFormatError("Couldn't extract mapping data from the AI response")
        try:
            data, _ = json.JSONDecoder().raw_decode(text, start)
        except json.JSONDecodeError as e:
            raise SuggestionFormatError(f"Invalid JSON in response: {e}") from e

    if not isinstance(data, dict):
        raise SuggestionFormatError("AI response JSON is not an object")
    return data


def validate_suggestion(
    raw: dict,
    headers: list[str],
    field_ids: list[str],
) -> ColumnMapping:
    """
    Check a decoded mapping against what was asked.

    Every key must be a supplied header and every non-null value a
    supplied field id.

    Raises:
        SuggestionFormatError: On the first offending entry
    """
    header_set = set(headers)
    field_set = set(field_ids)

    for key, value in raw.items():
        if key not in header_set:
            raise SuggestionFormatError(f"Unknown column in AI mapping: {key!r}")
        if value is not None and (not isinstance(value, str) or value not in field_set):
            raise SuggestionFormatError(f"Unknown field in AI mapping: {value!r}")

    return dict(raw)


class MappingSuggesterService:
    """
    Suggest column mappings with Claude.

    Retries failed attempts with a delay that grows with the attempt number.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        """Initialize suggester; without a client or API key it is unavailable."""
        api_key = api_key if api_key is not None else settings.anthropic_api_key
        if client is None and api_key:
            client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

        self.client = client
        self.model = model or settings.ai_model
        self.max_tokens = max_tokens or settings.ai_max_tokens
        self.max_retries = max_retries if max_retries is not None else settings.ai_max_retries
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None
            else settings.ai_retry_base_delay_seconds
        )

    @property
    def available(self) -> bool:
        return self.client is not None

    async def suggest(
        self,
        headers: list[str],
        sample_rows: list[list[Any]],
        fields: list[FieldDefinition],
    ) -> ColumnMapping:
        """
        Ask the model for a mapping.

        Args:
            headers: Source headers in file order
            sample_rows: A few data rows for context
            fields: Mappable catalog fields

        Returns:
            Mapping of header -> field id (null suggestions omitted)

        Raises:
            MappingSuggestionFailedError: Not configured, or every attempt failed
        """
        if not self.available:
            raise MappingSuggestionFailedError(
                "AI mapping is not configured. Please map your columns manually.",
                attempts=0,
            )

        prompt = build_mapping_prompt(headers, sample_rows, fields)
        field_ids = [f.id for f in fields]
        total_attempts = 1 + self.max_retries
        last_error: Optional[Exception] = None

        logger.info(
            "ai_mapping_started",
            columns=len(headers),
            prompt_preview=prompt[:200],
        )

        for attempt in range(total_attempts):
            if attempt > 0:
                await asyncio.sleep(self.retry_base_delay * attempt)

            try:
                text = await self._complete(prompt)
                raw = extract_json_object(text)
                mapping = validate_suggestion(raw, headers, field_ids)
            except (anthropic.APIError, SuggestionFormatError) as e:
                last_error = e
                logger.warning(
                    "ai_mapping_attempt_failed",
                    attempt=attempt + 1,
                    total_attempts=total_attempts,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            suggested = {header: target for header, target in mapping.items() if target}
            logger.info(
                "ai_mapping_completed",
                attempt=attempt + 1,
                mapped=len(suggested),
            )
            return suggested

        logger.error(
            "ai_mapping_failed",
            attempts=total_attempts,
            error=str(last_error),
        )
        raise MappingSuggestionFailedError(
            f"Failed to analyze columns with AI after {total_attempts} attempts: {last_error}",
            attempts=total_attempts,
        )

    async def _complete(self, prompt: str) -> str:
        """Send one completion request and return the response text."""
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )

        if not response.content:
            raise SuggestionFormatError("Failed to get a valid response from AI service")

        text = getattr(response.content[0], "text", None)
        if not text:
            raise SuggestionFormatError("Failed to get a valid response from AI service")

        logger.debug("ai_response_received", response_length=len(text))
        return text


_suggester: Optional[MappingSuggesterService] = None


def get_mapping_suggester_service() -> MappingSuggesterService:
    """Get or create MappingSuggesterService instance."""
    global _suggester
    if _suggester is None:
        _suggester = MappingSuggesterService()
    return _suggester
