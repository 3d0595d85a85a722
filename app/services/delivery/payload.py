"""
Webhook Delivery - Payload Module.

Module: payload.py
Builds the JSON body POSTed to subscriber webhooks.
"""

from typing import Any

from app.config.constants import ATTEMPT_HEADER, EVENT_ID_HEADER
from app.models.captured_event import CapturedEvent
from app.models.subscription import Subscription
from app.services.event_decoder import DecodedEvent, payload_from_json


def build_webhook_body(
    event: CapturedEvent, subscription: Subscription
) -> dict[str, Any]:
    """
    Build webhook body for an event.

    Decoded events carry their arguments by name. Unrecognized events
    carry an empty `args` plus the raw log and the decode error.

    Args:
        event: Captured event
        subscription: Owning subscription

    Returns:
        JSON-serializable body
    """
    content = payload_from_json(event.payload)

    body: dict[str, Any] = {
        "eventName": event.event_name,
        "args": content.args if isinstance(content, DecodedEvent) else {},
        "blockNumber": event.block_number,
        "transactionHash": event.transaction_hash,
        "logIndex": event.log_index,
        "blockHash": event.block_hash,
        "chainId": subscription.chain_id,
        "contractAddress": subscription.contract_address,
    }

    if not isinstance(content, DecodedEvent):
        body["raw"] = {"data": content.data, "topics": list(content.topics)}
        body["decodeError"] = content.error

    return body


def build_webhook_headers(event_id: int, attempt_number: int) -> dict[str, str]:
    """Headers receivers use to de-duplicate at-least-once deliveries."""
    return {
        EVENT_ID_HEADER: str(event_id),
        ATTEMPT_HEADER: str(attempt_number),
    }
