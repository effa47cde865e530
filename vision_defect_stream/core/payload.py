"""
Schema-validated parsing of raw detector output.

The vision model answers each frame with free text that should contain one
JSON object. :func:`parse_message` extracts that object and turns it into one
of the typed message variants below; anything unusable becomes a
:class:`MalformedMessage` instead of raising, so a bad frame never stops the
stream.

Detection messages keep ``confidence`` and ``box_2d`` untyped on purpose:
their defaulting, clamping and scale detection belong to the validator.
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Annotated, Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ..utils.exceptions import PayloadParseError

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class _Message(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)


class ClearMessage(_Message):
    """Frame analysed, nothing found (property-defect mode)."""

    type: Literal["clear"]


class ScanningMessage(_Message):
    """Frame analysed, nothing found (forensic mode)."""

    type: Literal["scanning"]


class _DetectionMessage(_Message):
    confidence: Any = None
    box_2d: Any = None
    severity: Any = None
    category: Any = None
    description: str = ""
    location: str = ""

    @field_validator("description", "location", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class DefectMessage(_DetectionMessage):
    """A construction or property defect reported by the model."""

    type: Literal["defect"]
    defect_type: Any = Field(default=None, alias="defectType")

    @property
    def type_label(self) -> Any:
        return self.defect_type


class EvidenceMessage(_DetectionMessage):
    """An item of forensic evidence reported by the model."""

    type: Literal["evidence"]
    evidence_type: Any = Field(default=None, alias="evidenceType")
    priority: Any = None
    clock_position: Optional[float] = Field(default=None, alias="clockPosition")
    suggested_actions: List[str] = Field(default_factory=list, alias="suggestedActions")

    @property
    def type_label(self) -> Any:
        return self.evidence_type

    @field_validator("clock_position", mode="before")
    @classmethod
    def _clock_position_number(cls, value: Any) -> Optional[float]:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            return None
        return float(value)

    @field_validator("suggested_actions", mode="before")
    @classmethod
    def _actions_list(cls, value: Any) -> List[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [str(action) for action in value]


class AuthenticityAlertMessage(_Message):
    """A forensic concern that the scene or footage may be manipulated or staged."""

    type: Literal["authenticity_alert"]
    concern: str = "unknown"
    severity: str = "medium"
    description: str = ""
    location: str = ""
    recommendation: str = ""

    @field_validator("description", "location", "recommendation", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("concern", mode="before")
    @classmethod
    def _concern_text(cls, value: Any) -> str:
        return str(value) if value else "unknown"

    @field_validator("severity", mode="before")
    @classmethod
    def _known_severity(cls, value: Any) -> str:
        if isinstance(value, str) and value.lower() in ("critical", "high", "medium"):
            return value.lower()
        return "medium"


@dataclass(frozen=True)
class MalformedMessage:
    """Detector output that could not be parsed."""

    reason: str
    raw_text: str = ""

    type = "malformed"


DetectorMessage = Annotated[
    Union[DefectMessage, EvidenceMessage, AuthenticityAlertMessage, ClearMessage, ScanningMessage],
    Field(discriminator="type"),
]
DetectionMessage = Union[DefectMessage, EvidenceMessage]
ParsedMessage = Union[DefectMessage, EvidenceMessage, AuthenticityAlertMessage, ClearMessage, ScanningMessage, MalformedMessage]

_MESSAGE_ADAPTER = TypeAdapter(DetectorMessage)


def extract_json_object(text: str) -> dict:
    """
    Pull the outermost JSON object out of model text (which may wrap it in
    prose or code fences).

    Raises:
        PayloadParseError: If no object is present or it is not valid JSON
    """
    if not isinstance(text, str):
        raise PayloadParseError(f"Expected text, got {type(text).__name__}")

    match = JSON_OBJECT_PATTERN.search(text)
    if match is None:
        raise PayloadParseError("No JSON object found", text)

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise PayloadParseError(f"Invalid JSON: {e.msg}", text) from e
    except RecursionError as e:
        raise PayloadParseError("Invalid JSON: nesting too deep", text) from e

    if not isinstance(data, dict):
        raise PayloadParseError("JSON payload is not an object", text)
    return data


def parse_payload(data: Mapping[str, Any]) -> Union[DefectMessage, EvidenceMessage, AuthenticityAlertMessage, ClearMessage, ScanningMessage]:
    """
    Validate a decoded payload against the detector message schemas.

    Raises:
        PayloadParseError: If the message type is missing, unknown or its fields are invalid
    """
    data = dict(data)
    message_type = data.get("type")
    if isinstance(message_type, str):
        data["type"] = message_type.strip().lower()
    elif message_type is None:
        # Untagged detections are identified by their label key
        if "defectType" in data:
            data["type"] = "defect"
        elif "evidenceType" in data:
            data["type"] = "evidence"

    try:
        return _MESSAGE_ADAPTER.validate_python(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
        raise PayloadParseError(f"{location}: {first.get('msg', 'invalid')}", json.dumps(data, default=str)) from e


def parse_message(text: str) -> ParsedMessage:
    """
    Parse one raw detector message. Never raises.

    Returns:
        A typed message, or MalformedMessage with the reason parsing failed
    """
    try:
        return parse_payload(extract_json_object(text))
    except PayloadParseError as e:
        return MalformedMessage(reason=e.reason, raw_text=text if isinstance(text, str) else repr(text))
