"""Payload serializers — turn application events into envelope bytes."""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

from .exceptions import PayloadSerializationError

JSON_FORMAT = "application/json"


def _json_default(obj: Any) -> Any:
    """Serialize datetimes and sets; reject everything else."""
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


@runtime_checkable
class IPayloadSerializer(Protocol):
    """Encodes one event into the bytes stored in ``Envelope.data``."""

    format: str

    def serialize(self, message: Any) -> bytes: ...


class JsonPayloadSerializer(IPayloadSerializer):
    """UTF-8 JSON encoding of pydantic models, dicts and plain objects."""

    format = JSON_FORMAT

    def __init__(self, *, exclude: set[str] | None = None) -> None:
        self._exclude = exclude or set()

    def to_dict(self, message: Any) -> dict[str, Any]:
        if hasattr(message, "model_dump"):
            data = message.model_dump(mode="json")
        elif isinstance(message, dict):
            data = dict(message)
        elif hasattr(message, "__dict__"):
            data = dict(vars(message))
        else:
            raise PayloadSerializationError(
                f"Cannot serialize {type(message).__name__} to JSON"
            )
        for field in self._exclude:
            data.pop(field, None)
        return data

    def serialize(self, message: Any) -> bytes:
        data = self.to_dict(message)
        try:
            return json.dumps(data, default=_json_default).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise PayloadSerializationError(str(e)) from e


__all__ = ["JSON_FORMAT", "IPayloadSerializer", "JsonPayloadSerializer"]
