"""
Event Decoder.

Matches a log's topic0 against the event signatures of a subscription
ABI and decodes indexed topics and data with eth-abi.
"""

from collections.abc import Sequence
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_bytes, to_hex
from eth_utils.abi import collapse_if_tuple, event_abi_to_log_topic
from eth_utils.exceptions import ValidationError
from loguru import logger

from app.services.blockchain.types import RawLog
from app.utils.exceptions import DecodeError

from .types import DecodedEvent, EventArgument, EventPayload, RawLogEvent


def _is_dynamic(abi_type: str) -> bool:
    """Dynamic types are hashed when indexed."""
    return (
        abi_type in ("string", "bytes")
        or abi_type.endswith("]")
        or abi_type.startswith("tuple")
    )


def _validate_event_abi(entry: dict[str, Any]) -> None:
    """
    Check the fields decoding relies on.

    Raises:
        DecodeError: If the name or an input type is missing
    """
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise DecodeError("event entry has no name")

    inputs = entry.get("inputs", [])
    if not isinstance(inputs, list):
        raise DecodeError(f"{name}: inputs must be a list")
    _validate_inputs(name, inputs)


def _validate_inputs(name: str, inputs: list) -> None:
    for item in inputs:
        if not isinstance(item, dict) or not isinstance(item.get("type"), str):
            raise DecodeError(f"{name}: every input needs a type")
        if item["type"].startswith("tuple"):
            components = item.get("components")
            if not isinstance(components, list):
                raise DecodeError(f"{name}: tuple input without components")
            _validate_inputs(name, components)


def _to_json_value(abi_input: dict[str, Any], value: Any) -> Any:
    """Convert an eth-abi value to a JSON-safe value."""
    abi_type = abi_input["type"]

    if abi_type.endswith("]"):
        item_input = {**abi_input, "type": abi_type[: abi_type.rindex("[")]}
        return [_to_json_value(item_input, item) for item in value]

    if abi_type == "tuple":
        components = abi_input.get("components", [])
        return {
            (component.get("name") or str(index)): _to_json_value(component, item)
            for index, (component, item) in enumerate(zip(components, value))
        }

    if abi_type == "address":
        return str(value).lower()
    if isinstance(value, bytes):
        return to_hex(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        # uint256 does not fit JSON number precision
        return str(value)
    return value


class EventDecoder:
    """
    Decoder bound to one contract ABI.

    Build once per subscription per cycle and reuse for all its logs.
    """

    def __init__(self, abi: Sequence[dict[str, Any]] | None) -> None:
        """
        Initialize decoder.

        Args:
            abi: Contract ABI (functions and other entries are ignored)
        """
        self._events_by_topic: dict[str, dict[str, Any]] = {}
        self._abi_error: str | None = None

        try:
            for entry in abi or []:
                if entry.get("type") != "event" or entry.get("anonymous"):
                    continue
                _validate_event_abi(entry)
                topic = to_hex(event_abi_to_log_topic(entry))
                self._events_by_topic[topic] = entry
        except (
            AttributeError,
            DecodeError,
            KeyError,
            TypeError,
            ValueError,
            ValidationError,
        ) as e:
            self._events_by_topic.clear()
            self._abi_error = f"Invalid ABI: {e}"
            logger.debug(f"[Decoder] {self._abi_error}")

    @property
    def event_names(self) -> list[str]:
        """Names of the decodable (non-anonymous) events."""
        return [entry["name"] for entry in self._events_by_topic.values()]

    def decode(self, data: str, topics: Sequence[str]) -> DecodedEvent:
        """
        Decode a log.

        Args:
            data: Non-indexed data, 0x-hex
            topics: Topics, 0x-hex

        Returns:
            Decoded event

        Raises:
            DecodeError: If no ABI event matches or the data is malformed
        """
        if self._abi_error:
            raise DecodeError(self._abi_error)
        if not topics:
            raise DecodeError("Log has no topics (anonymous event)")

        signature = topics[0].lower()
        event_abi = self._events_by_topic.get(signature)
        if event_abi is None:
            raise DecodeError(f"No ABI event matches signature {signature}")

        inputs = event_abi.get("inputs", [])
        indexed_inputs = [item for item in inputs if item.get("indexed")]
        data_inputs = [item for item in inputs if not item.get("indexed")]

        if len(topics) - 1 != len(indexed_inputs):
            raise DecodeError(
                f"{event_abi['name']}: expected {len(indexed_inputs)} indexed "
                f"topics, got {len(topics) - 1}"
            )

        try:
            data_values = abi_decode(
                [collapse_if_tuple(item) for item in data_inputs],
                to_bytes(hexstr=data) if data not in ("", "0x") else b"",
            )
            topic_values = [
                topic
                if _is_dynamic(item["type"])
                else abi_decode([collapse_if_tuple(item)], to_bytes(hexstr=topic))[0]
                for item, topic in zip(indexed_inputs, topics[1:])
            ]
        except (DecodingError, TypeError, ValueError) as e:
            raise DecodeError(f"{event_abi['name']}: {e}") from e

        data_iter = iter(data_values)
        topic_iter = iter(topic_values)
        arguments = []
        for index, item in enumerate(inputs):
            indexed = bool(item.get("indexed"))
            raw_value = next(topic_iter) if indexed else next(data_iter)
            if indexed and _is_dynamic(item["type"]):
                value = raw_value.lower()
            else:
                value = _to_json_value(item, raw_value)
            arguments.append(
                EventArgument(
                    name=item.get("name") or f"arg{index}",
                    kind=collapse_if_tuple(item),
                    value=value,
                    indexed=indexed,
                )
            )

        return DecodedEvent(
            name=event_abi["name"],
            signature=signature,
            arguments=tuple(arguments),
        )

    def decode_log(self, log: RawLog) -> EventPayload:
        """
        Decode a log, falling back to the raw variant on failure.

        Decode failures never drop a log: the raw data and the error text
        are kept so the subscriber still sees the on-chain activity.

        Args:
            log: Raw log from the chain client

        Returns:
            DecodedEvent or RawLogEvent
        """
        try:
            return self.decode(log.data, log.topics)
        except DecodeError as e:
            logger.warning(
                f"[Decoder] Failed to decode log {log.transaction_hash}"
                f"#{log.log_index}: {e}"
            )
            return RawLogEvent(data=log.data, topics=log.topics, error=str(e))
