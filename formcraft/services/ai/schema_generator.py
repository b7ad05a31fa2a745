"""
Schema Generator Module

Turns a natural-language form description into a validated form schema.
The model output is extracted, repaired and validated; one stricter retry
is made when the output is not a usable schema.
"""

import asyncio
import json
import re
from typing import Any, Dict, List, Optional

from loguru import logger
from openai import AsyncOpenAI
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from formcraft.services.ai.errors import (
    ConfigurationMissing,
    InvalidSchemaOutput,
    QuotaExhausted,
    RateLimited,
    UpstreamTransportError,
)
from formcraft.services.ai.service_base import AIServiceBase
from formcraft.services.ai.types import FieldType, GeneratedSchema
from formcraft.settings import Settings

MAX_PROMPT_CHARS = 1000
# First attempt plus one retry
MAX_ATTEMPTS = 2

_FENCED_BLOCK = re.compile(r"```[\w-]*\s*([\s\S]*?)```")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
# Raw control characters, including newlines and tabs inside string values
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_QUOTA_SIGNAL = re.compile(r"insufficient_quota|quota|billing", re.IGNORECASE)

FIELD_TYPE_NAMES = "|".join(t.value for t in FieldType)

SYSTEM_PROMPT = f"""You are a form schema generator. Given a user's description of a form they need, generate a JSON schema for that form.

The schema must follow this exact structure:
{{
  "title": "Form Title",
  "description": "Brief description of the form",
  "fields": [
    {{
      "id": "unique_field_id",
      "type": "{FIELD_TYPE_NAMES}",
      "label": "Field Label",
      "placeholder": "Optional placeholder text",
      "required": true,
      "options": ["Option 1", "Option 2"]
    }}
  ]
}}

Field types available:
- text: Single line text input
- email: Email input with validation
- number: Numeric input
- textarea: Multi-line text input
- select: Dropdown selection
- checkbox: Multiple choice checkboxes
- radio: Single choice radio buttons
- date: Date picker
- file: File upload (for images)

Only select, checkbox and radio fields have "options". Every field id must be unique.
Generate appropriate fields based on the user's description. Be thorough but practical.
Return ONLY valid JSON, no markdown or explanation."""

MEMORY_PROMPT = """
The user has created these forms before. Reuse their naming, field ordering and structure where it fits the new request:
{context}"""

STRICT_SUFFIX = """
IMPORTANT: Your previous answer could not be used. Return ONLY the JSON object, no markdown, no code fences, no explanation."""


def extract_json_text(text: str) -> str:
    """
    Pick the part of a model response that should hold the JSON object.

    :param text: Raw model output
    :return: Fenced block contents, else the outermost ``{...}`` span,
        else the whole text
    """
    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        return fenced.group(1).strip()

    json_start = text.find("{")
    json_end = text.rfind("}") + 1
    if json_start >= 0 and json_end > json_start:
        return text[json_start:json_end]

    return text.strip()


def repair_json(text: str) -> str:
    """
    Apply the fixed repair transforms, in order.

    1. replace control characters with a space
    2. strip trailing commas before a closing bracket

    Any other malformation is left as is.
    """
    text = _CONTROL_CHARS.sub(" ", text)
    return _TRAILING_COMMA.sub(r"\1", text)


def parse_schema(text: str) -> GeneratedSchema:
    """
    Parse and validate a model response.

    :param text: Raw model output
    :return: Validated schema
    :raises InvalidSchemaOutput: when parsing or validation fails
    """
    candidate = extract_json_text(text or "")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            data = json.loads(repair_json(candidate))
        except json.JSONDecodeError as e:
            raise InvalidSchemaOutput(details=f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidSchemaOutput(details="Response is not a JSON object")
    if not data.get("title") or not isinstance(data.get("fields"), list) or not data["fields"]:
        raise InvalidSchemaOutput("Invalid schema structure", details=candidate[:500])

    try:
        return GeneratedSchema.model_validate(data)
    except ValidationError as e:
        raise InvalidSchemaOutput("Invalid schema structure", details=str(e)) from e


def map_transport_error(error: Exception) -> UpstreamTransportError:
    """
    Translate a completion client failure into a typed error.

    :param error: Exception raised by the completion call
    :return: RateLimited, QuotaExhausted or UpstreamTransportError
    """
    if isinstance(error, UpstreamTransportError):
        return error

    status = getattr(error, "status_code", None)
    message = str(error)
    code = str(getattr(error, "code", "") or "")

    if status == 402:
        return QuotaExhausted(details=message)
    if status == 429:
        if _QUOTA_SIGNAL.search(code) or _QUOTA_SIGNAL.search(message):
            return QuotaExhausted(details=message)
        return RateLimited(details=message)
    return UpstreamTransportError(details=message)


class SchemaGenerator(AIServiceBase):
    """Generates form schemas through an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        settings: Settings,
        llm_client: Optional[Any] = None,
        enable_metrics: bool = True,
    ):
        """
        Initialize the schema generator.

        :param settings: Application settings
        :param llm_client: Optional AsyncOpenAI-compatible client
        :param enable_metrics: Whether to track performance metrics
        """
        super().__init__(settings, "schema_generator", enable_metrics)
        self.model = settings.completion_model
        self.timeout = settings.completion_timeout
        self.temperature = settings.completion_temperature
        self.retry_temperature = settings.completion_retry_temperature
        self.max_tokens = settings.completion_max_tokens
        self.metrics.update({"llm_calls": 0, "schema_retries": 0})

        self.llm = llm_client
        if self.llm is None and settings.completion_api_key:
            # Transport errors are never retried, the client must not do it either
            self.llm = AsyncOpenAI(
                api_key=settings.completion_api_key,
                base_url=settings.completion_base_url,
                timeout=settings.completion_timeout,
                max_retries=0,
            )

        logger.info(f"Initialized SchemaGenerator with model: {self.model}")

    @property
    def is_configured(self) -> bool:
        return self.llm is not None

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationMissing(
                "AI service not configured. Set FORMCRAFT_COMPLETION_API_KEY."
            )

    def build_messages(
        self, prompt: str, context_block: str = "", strict: bool = False
    ) -> List[Dict[str, str]]:
        """
        Build the chat messages for one attempt.

        :param prompt: User prompt, already truncated
        :param context_block: Memory context, may be empty
        :param strict: Whether this is the stricter retry
        :return: Chat messages
        """
        system_prompt = SYSTEM_PROMPT
        if context_block:
            system_prompt += MEMORY_PROMPT.format(context=context_block)
        if strict:
            system_prompt += STRICT_SUFFIX

        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": f"Generate a form schema for: {prompt}"},
        ]

    async def _complete(self, messages: List[Dict[str, str]], temperature: float) -> str:
        self._track_metric("llm_calls")
        logger.debug(f"Calling LLM with model {self.model}, temperature {temperature}")
        request = self.llm.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=self.max_tokens,
        )
        try:
            # A dispatched call runs to completion even if the caller goes away
            response = await asyncio.wait_for(asyncio.shield(request), self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTransportError(
                "AI service timed out", details=f"No response after {self.timeout}s"
            ) from e
        except Exception as e:
            mapped = map_transport_error(e)
            logger.error(f"AI service error: {mapped.message} ({mapped.details})")
            raise mapped from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def _attempt(self, prompt: str, context_block: str, strict: bool) -> GeneratedSchema:
        temperature = self.retry_temperature if strict else self.temperature
        messages = self.build_messages(prompt, context_block, strict=strict)
        text = await self._complete(messages, temperature)
        schema = parse_schema(text)
        logger.info(f"Generated schema '{schema.title}' with {len(schema.fields)} fields")
        return schema

    async def generate(self, prompt: str, context_block: str = "") -> GeneratedSchema:
        """
        Generate and validate a form schema.

        :param prompt: Natural-language description of the form
        :param context_block: Memory context from prior forms, may be empty
        :return: Validated schema
        :raises ConfigurationMissing: when no completion key is configured
        :raises UpstreamTransportError: on transport failure, not retried
        :raises InvalidSchemaOutput: when both attempts produce unusable output
        """
        self.ensure_configured()
        prompt = prompt[:MAX_PROMPT_CHARS]

        schema = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(MAX_ATTEMPTS),
                retry=retry_if_exception_type(InvalidSchemaOutput),
                reraise=True,
            ):
                with attempt:
                    strict = attempt.retry_state.attempt_number > 1
                    if strict:
                        self._track_metric("schema_retries")
                        logger.warning("Schema output invalid, retrying with strict instruction")
                    schema = await self.run_with_metrics(
                        self._attempt, prompt, context_block, strict
                    )
        except InvalidSchemaOutput as e:
            logger.error(f"Could not produce a valid schema: {e.details}")
            raise InvalidSchemaOutput(
                "Could not produce a valid schema", details=e.details
            ) from e

        return schema
