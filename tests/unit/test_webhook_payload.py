"""Tests for the webhook body builder."""

from datetime import UTC, datetime

from app.models import CapturedEvent, Subscription
from app.services.delivery import build_webhook_body, build_webhook_headers
from app.services.event_decoder import EventDecoder
from tests.chain_fixtures import (
    CONTRACT_ADDRESS,
    ERC20_ABI,
    RECIPIENT,
    SENDER,
    make_transfer_log,
    make_unknown_log,
)


def make_subscription() -> Subscription:
    return Subscription(
        id=1,
        owner_id="owner-1",
        chain_id=56,
        contract_address=CONTRACT_ADDRESS.upper().replace("0X", "0x"),
        abi=ERC20_ABI,
        webhook_url="https://hooks.example.com/x",
        event_filters=[],
        last_processed_block=100,
        status="active",
    )


def make_event(log) -> CapturedEvent:
    payload = EventDecoder(ERC20_ABI).decode_log(log)
    return CapturedEvent(
        id=9,
        subscription_id=1,
        block_number=log.block_number,
        block_hash=log.block_hash,
        transaction_hash=log.transaction_hash,
        log_index=log.log_index,
        event_name=payload.name,
        payload=payload.to_json(),
        decode_error=getattr(payload, "error", None),
        status="PENDING",
        retry_count=0,
        next_retry_at=datetime(2026, 1, 1, tzinfo=UTC),
    )


class TestBuildWebhookBody:
    """Tests for build_webhook_body."""

    def test_decoded_event_body(self):
        """Decoded events carry named args and log coordinates."""
        log = make_transfer_log(block_number=1050, log_index=3, value=42)

        body = build_webhook_body(make_event(log), make_subscription())

        assert body == {
            "eventName": "Transfer",
            "args": {"from": SENDER, "to": RECIPIENT, "value": "42"},
            "blockNumber": 1050,
            "transactionHash": log.transaction_hash,
            "logIndex": 3,
            "blockHash": log.block_hash,
            "chainId": 56,
            "contractAddress": CONTRACT_ADDRESS,
        }

    def test_unknown_event_body(self):
        """Unrecognized events carry the raw log and the decode error."""
        log = make_unknown_log(block_number=1050)

        body = build_webhook_body(make_event(log), make_subscription())

        assert body["eventName"] == "UnknownEvent"
        assert body["args"] == {}
        assert body["raw"] == {"data": "0xdeadbeef", "topics": list(log.topics)}
        assert "No ABI event matches" in body["decodeError"]

    def test_headers(self):
        """De-duplication headers carry event id and attempt number."""
        assert build_webhook_headers(9, 2) == {
            "X-Chainhook-Event-Id": "9",
            "X-Chainhook-Attempt": "2",
        }
