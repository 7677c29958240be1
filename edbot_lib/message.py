"""
edbot_lib/message.py

Envelope model and JSON codec.

Wire shapes:
- REQUEST:  {category, type, sequence, params}
- RESPONSE: {category, type, sequence, status: {success, text}, data}
- UPDATE:   {category, data}
- DELETE:   {category, data: {path}}
- CLOSE is synthesized locally and never encoded for the wire.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .const import Category, RequestType
from .errors import EdbotProtocolError


@dataclass(frozen=True, slots=True)
class ResponseStatus:
    success: bool
    text: str = ""


MISSING_STATUS = ResponseStatus(success=False, text="Response carried no status.")


@dataclass(frozen=True, slots=True)
class Envelope:
    """One complete protocol message."""

    category: Category | int
    type: RequestType | int | None = None
    sequence: Optional[int] = None
    params: Any = None
    data: Any = None
    status: Optional[ResponseStatus] = None

    def response_status(self) -> ResponseStatus:
        return self.status if self.status is not None else MISSING_STATUS

    def to_json(self) -> dict[str, Any]:
        obj: dict[str, Any] = {"category": int(self.category)}
        if self.category in (Category.REQUEST, Category.RESPONSE):
            obj["type"] = int(self.type) if self.type is not None else None
            obj["sequence"] = self.sequence
        if self.category == Category.REQUEST:
            obj["params"] = self.params
            return obj
        if self.category == Category.RESPONSE:
            status = self.response_status()
            obj["status"] = {"success": status.success, "text": status.text}
        obj["data"] = self.data
        return obj

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "Envelope":
        category = _coerce_int(obj.get("category"))
        if category is None:
            raise EdbotProtocolError("Envelope has no integer category.")
        return cls(
            category=_as_enum(Category, category),
            type=_as_enum(RequestType, _coerce_int(obj.get("type"))),
            sequence=_coerce_int(obj.get("sequence")),
            params=obj.get("params"),
            data=obj.get("data"),
            status=_parse_status(obj.get("status")),
        )


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _as_enum(enum_cls, value: Optional[int]):
    # Unknown values stay raw ints so newer server traffic can still be routed.
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _parse_status(value: Any) -> Optional[ResponseStatus]:
    if not isinstance(value, Mapping):
        return None
    text = value.get("text")
    return ResponseStatus(
        success=value.get("success") is True,
        text=text if isinstance(text, str) else ("" if text is None else str(text)),
    )


def build_request(sequence: int, request_type: RequestType | int, params: Any = None) -> Envelope:
    if not isinstance(sequence, int) or sequence < 1:
        raise ValueError(f"sequence must be an int >= 1 (got {sequence!r})")
    return Envelope(
        category=Category.REQUEST,
        type=request_type,
        sequence=sequence,
        params=params,
    )


def build_close_envelope(code: int, reason: str) -> Envelope:
    return Envelope(category=Category.CLOSE, data={"code": code, "reason": reason})


def encode_envelope(envelope: Envelope) -> str:
    if envelope.category == Category.CLOSE:
        raise EdbotProtocolError("CLOSE envelopes are local-only and cannot be sent.")
    return json.dumps(envelope.to_json(), separators=(",", ":"), ensure_ascii=False)


def decode_envelope(text: str | bytes) -> Envelope:
    try:
        obj = json.loads(text)
    except (TypeError, ValueError) as e:
        raise EdbotProtocolError(f"Received invalid JSON: {e}") from e
    except RecursionError as e:
        raise EdbotProtocolError("Received JSON nested too deeply.") from e
    if not isinstance(obj, dict):
        raise EdbotProtocolError(
            f"Expected a JSON object but received {type(obj).__name__}."
        )
    return Envelope.from_json(obj)


__all__ = [
    "Envelope",
    "ResponseStatus",
    "build_close_envelope",
    "build_request",
    "decode_envelope",
    "encode_envelope",
]
