"""
JSON frame protocol modeled on STOMP 1.2.

Frames travel as JSON text messages: {"command": ..., "headers": {...}, "body": ...}.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

STOMP_VERSION = "1.2"


class FrameCommand(str, Enum):
    CONNECT = "CONNECT"
    STOMP = "STOMP"
    CONNECTED = "CONNECTED"
    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"
    SEND = "SEND"
    MESSAGE = "MESSAGE"
    DISCONNECT = "DISCONNECT"


class StompFrame(BaseModel):
    command: FrameCommand
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    version: Optional[str] = None

    @field_validator("command", mode="before")
    @classmethod
    def upper_command(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("headers", mode="before")
    @classmethod
    def stringify_headers(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items() if val is not None}
        return v

    @field_validator("body", mode="before")
    @classmethod
    def stringify_body(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return json.dumps(v, default=str)

    @property
    def destination(self) -> Optional[str]:
        return self.headers.get("destination") or None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def parse(cls, raw: str | bytes) -> "StompFrame":
        """Parse an inbound text frame. Raises ValueError on malformed input."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return cls.model_validate_json(raw)


def encode_body(payload: Any) -> str:
    """Strings pass through; anything else is JSON-serialized."""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, default=str)
