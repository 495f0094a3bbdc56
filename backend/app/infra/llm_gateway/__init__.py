"""LLM gateway entry points for image classification."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ...config import ClassifierConfig, load_settings

logger = logging.getLogger(__name__)

__all__ = [
    "ClassificationPayload",
    "ClassificationResult",
    "ClassifierGatewayError",
    "SYSTEM_PROMPT",
    "USER_PROMPT",
    "build_classification_request",
    "classify_image",
    "extract_json_object",
    "parse_classification_text",
]

SYSTEM_PROMPT = (
    "You are a friendly nature guide who classifies landscapes, plants, animals, "
    "and weather. Avoid brand names. Be concise."
)
USER_PROMPT = (
    "Identify the natural scene. Return strict JSON with fields: label (short name), "
    "description (1-2 sentences), tags (array of 3-6 lowercase words), "
    "confidence (0-1). No markdown."
)
MESSAGES_PATH = "/v1/messages"
DEFAULT_IMAGE_MIME = "image/jpeg"
SUPPORTED_PROVIDER = "anthropic"


class ClassifierGatewayError(RuntimeError):
    """Raised when an image cannot be classified."""

    def __init__(self, message: str, *, code: str, retryable: bool) -> None:
        super().__init__(message)
        self.code = code
        self.retryable = retryable


class ClassificationPayload(BaseModel):
    """Schema the model's JSON answer must satisfy."""

    model_config = ConfigDict(extra="ignore")

    label: str = Field(strict=True)
    description: str = Field(strict=True)
    tags: List[str] = Field(strict=True)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0, strict=True)

    @field_validator("label")
    @classmethod
    def _label_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("label must not be empty")
        return stripped

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        return value.strip()

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: List[str]) -> List[str]:
        tags: List[str] = []
        for item in value:
            cleaned = item.strip().lower()
            if cleaned and cleaned not in tags:
                tags.append(cleaned)
        return tags


@dataclass(frozen=True)
class ClassificationResult:
    """Normalized classification returned to the capture pipeline."""

    label: str
    description: str
    model_used: str
    tags: List[str] = field(default_factory=list)
    confidence: Optional[float] = None
    raw_text: Optional[str] = None
    response: Optional[Dict[str, Any]] = None


def classify_image(
    data: bytes,
    mime: Optional[str] = None,
    *,
    config: Optional[ClassifierConfig] = None,
) -> ClassificationResult:
    """Send ``data`` to the configured vision model and parse its answer.

    A single attempt is made; every failure surfaces as ``ClassifierGatewayError``.
    """

    cfg = config or load_settings().classifier
    if cfg.provider.strip().lower() != SUPPORTED_PROVIDER:
        raise ClassifierGatewayError(
            f"classifier provider '{cfg.provider}' is not supported",
            code="classifier_provider_unsupported",
            retryable=False,
        )
    if not cfg.api_key:
        raise ClassifierGatewayError(
            "classifier API key is not configured",
            code="classifier_not_configured",
            retryable=False,
        )
    if not data:
        raise ClassifierGatewayError(
            "image payload is empty", code="classifier_empty_image", retryable=False
        )

    body = build_classification_request(data, mime or DEFAULT_IMAGE_MIME, config=cfg)
    headers = {
        "x-api-key": cfg.api_key,
        "anthropic-version": cfg.api_version,
        "content-type": "application/json",
    }
    logger.debug(
        "classifier_request_prepared",
        extra={"model": cfg.model, "image_bytes": len(data), "mime": mime},
    )

    try:
        response = requests.post(
            f"{cfg.endpoint}{MESSAGES_PATH}",
            headers=headers,
            json=body,
            timeout=cfg.timeout_seconds,
        )
    except requests.Timeout as exc:
        raise ClassifierGatewayError(
            "classifier request timed out", code="classifier_timeout", retryable=True
        ) from exc
    except requests.RequestException as exc:
        raise ClassifierGatewayError(
            f"classifier request failed: {exc}",
            code="classifier_unreachable",
            retryable=True,
        ) from exc

    if response.status_code >= 400:
        logger.warning(
            "classifier_http_error",
            extra={"status_code": response.status_code, "body": response.text[:500]},
        )
        raise ClassifierGatewayError(
            f"classifier returned HTTP {response.status_code}",
            code=(
                "classifier_rate_limited"
                if response.status_code == 429
                else "classifier_http_error"
            ),
            retryable=response.status_code == 429 or response.status_code >= 500,
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise ClassifierGatewayError(
            "classifier response is not valid JSON",
            code="classifier_response_invalid_json",
            retryable=False,
        ) from exc

    text = _first_text_block(payload)
    parsed = parse_classification_text(text)
    model_used = payload.get("model") or cfg.model
    logger.info(
        "classifier_response_parsed",
        extra={"model": model_used, "label": parsed.label, "tag_count": len(parsed.tags)},
    )
    return ClassificationResult(
        label=parsed.label,
        description=parsed.description,
        model_used=str(model_used),
        tags=list(parsed.tags),
        confidence=parsed.confidence,
        raw_text=text,
        response=payload,
    )


def build_classification_request(
    data: bytes, mime: str, *, config: ClassifierConfig
) -> Dict[str, Any]:
    """Return the Messages API body for one image."""

    return {
        "model": config.model,
        "max_tokens": config.max_tokens,
        "system": SYSTEM_PROMPT,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": mime,
                            "data": base64.b64encode(data).decode("ascii"),
                        },
                    },
                    {"type": "text", "text": USER_PROMPT},
                ],
            }
        ],
    }


def extract_json_object(text: Optional[str]) -> Optional[str]:
    """Return the substring from the first ``{`` to the last ``}`` inclusive."""

    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or start >= end:
        return None
    return text[start : end + 1]


def parse_classification_text(text: Optional[str]) -> ClassificationPayload:
    """Parse a model answer that may be wrapped in prose or code fences."""

    candidate = extract_json_object(text)
    if candidate is None:
        raise ClassifierGatewayError(
            "classifier response contains no JSON object",
            code="classifier_response_missing_json",
            retryable=False,
        )
    try:
        decoded = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ClassifierGatewayError(
            f"classifier response is not valid JSON: {exc.msg}",
            code="classifier_response_invalid_json",
            retryable=False,
        ) from exc
    if not isinstance(decoded, dict):
        raise ClassifierGatewayError(
            "classifier response payload must be a JSON object",
            code="classifier_response_invalid_payload",
            retryable=False,
        )
    try:
        return ClassificationPayload.model_validate(decoded)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        raise ClassifierGatewayError(
            f"classifier response failed validation: {', '.join(fields) or 'payload'}",
            code="classifier_response_invalid_payload",
            retryable=False,
        ) from exc


def _first_text_block(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise ClassifierGatewayError(
            "classifier response payload must be a JSON object",
            code="classifier_response_invalid_payload",
            retryable=False,
        )
    for block in payload.get("content") or []:
        if isinstance(block, dict) and block.get("type") == "text":
            text = block.get("text")
            if isinstance(text, str):
                return text
    raise ClassifierGatewayError(
        "classifier response has no text content",
        code="classifier_response_missing_text",
        retryable=False,
    )
