"""
Event payload types.

A captured event's content is one of two variants:
- DecodedEvent: the log matched an ABI event; arguments are named and
  tagged with their ABI type
- RawLogEvent: decoding failed; the raw log and the error are kept
"""

from dataclasses import dataclass
from typing import Any

from app.config.constants import UNKNOWN_EVENT_NAME

DECODED_KIND = "decoded"
RAW_KIND = "raw"


@dataclass(frozen=True)
class EventArgument:
    """
    One decoded event argument.

    `value` is JSON-safe. Indexed arguments of dynamic types (string,
    bytes, arrays, tuples) are only available as their keccak topic,
    which is what `value` holds for them.
    """

    name: str
    kind: str
    value: Any
    indexed: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "value": self.value,
            "indexed": self.indexed,
        }


@dataclass(frozen=True)
class DecodedEvent:
    """Log decoded against the subscription ABI."""

    name: str
    signature: str
    arguments: tuple[EventArgument, ...]

    @property
    def args(self) -> dict[str, Any]:
        """Arguments as an ordered name -> value mapping."""
        return {argument.name: argument.value for argument in self.arguments}

    def to_json(self) -> dict[str, Any]:
        return {
            "kind": DECODED_KIND,
            "name": self.name,
            "signature": self.signature,
            "arguments": [argument.to_json() for argument in self.arguments],
        }


@dataclass(frozen=True)
class RawLogEvent:
    """Log that could not be decoded."""

    data: str
    topics: tuple[str, ...]
    error: str

    name = UNKNOWN_EVENT_NAME

    def to_json(self) -> dict[str, Any]:
        return {
            "kind": RAW_KIND,
            "data": self.data,
            "topics": list(self.topics),
            "error": self.error,
        }


EventPayload = DecodedEvent | RawLogEvent


def payload_from_json(data: dict[str, Any]) -> EventPayload:
    """
    Rebuild a payload variant from its stored JSON form.

    Raises:
        ValueError: If the stored kind is unknown
    """
    kind = data.get("kind")
    if kind == DECODED_KIND:
        return DecodedEvent(
            name=data["name"],
            signature=data["signature"],
            arguments=tuple(
                EventArgument(
                    name=item["name"],
                    kind=item["kind"],
                    value=item["value"],
                    indexed=item.get("indexed", False),
                )
                for item in data.get("arguments", [])
            ),
        )
    if kind == RAW_KIND:
        return RawLogEvent(
            data=data["data"],
            topics=tuple(data.get("topics", [])),
            error=data["error"],
        )
    raise ValueError(f"Unknown payload kind: {kind!r}")
