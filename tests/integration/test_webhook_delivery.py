"""Integration tests for the delivery worker on SQLite."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select, update

from app.models import CapturedEvent, DeliveryAttempt, Subscription
from app.models.enums import EventStatus, SubscriptionStatus
from app.repositories.captured_event_repository import CapturedEventRepository
from app.services.delivery import RetryPolicy, WebhookDeliveryService, WebhookResult
from app.utils.exceptions import WebhookDeliveryError
from tests.chain_fixtures import WEBHOOK_URL

OK = WebhookResult(success=True, status_code=200, response_body="ok", duration_ms=3)
ERROR_500 = WebhookResult(
    success=False, status_code=500, response_body="boom", duration_ms=3
)
TIMEOUT = WebhookResult(success=False, error="Timeout after 10.0s", duration_ms=10000)


def naive(value):
    return value.replace(tzinfo=None) if value is not None else None


async def load_event(session_factory, event_id: int) -> CapturedEvent:
    async with session_factory() as session:
        return await session.get(CapturedEvent, event_id)


async def load_attempts(session_factory, event_id: int) -> list[DeliveryAttempt]:
    async with session_factory() as session:
        result = await session.execute(
            select(DeliveryAttempt)
            .where(DeliveryAttempt.event_id == event_id)
            .order_by(DeliveryAttempt.id)
        )
        return list(result.scalars().all())


@pytest.fixture
def webhook_client():
    client = AsyncMock()
    client.send = AsyncMock(return_value=OK)
    client.close = AsyncMock()
    return client


@pytest.fixture
def delivery_service(session_factory, webhook_client, clock):
    return WebhookDeliveryService(
        session_factory,
        webhook_client=webhook_client,
        retry_policy=RetryPolicy(max_retries=5, base_delay=60, max_delay=3600),
        clock=clock,
        concurrency=1,
    )


class TestDelivery:
    """Happy path and request shape."""

    @pytest.mark.asyncio
    async def test_success_marks_delivered(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory, clock
    ):
        """A 2xx response delivers the event and records one attempt."""
        subscription = await add_subscription()
        event = await add_event(subscription.id)

        stats = await delivery_service.process_due_events()

        assert stats["delivered"] == 1
        reloaded = await load_event(session_factory, event.id)
        assert reloaded.status == EventStatus.DELIVERED.value
        assert naive(reloaded.delivered_at) == naive(clock.now())
        [attempt] = await load_attempts(session_factory, event.id)
        assert attempt.success is True
        assert attempt.response_status == 200
        assert attempt.response_body == "ok"

        url, body = webhook_client.send.await_args.args
        assert url == WEBHOOK_URL
        assert body["eventName"] == "Transfer"
        assert body["args"]["value"] == "1000"
        assert body["blockNumber"] == 1050
        assert body["logIndex"] == 0
        headers = webhook_client.send.await_args.kwargs["headers"]
        assert headers["X-Chainhook-Event-Id"] == str(event.id)
        assert headers["X-Chainhook-Attempt"] == "1"

    @pytest.mark.asyncio
    async def test_not_due_is_not_sent(
        self, delivery_service, webhook_client, add_subscription, add_event, clock
    ):
        """Events scheduled in the future are left alone."""
        subscription = await add_subscription()
        await add_event(subscription.id, next_retry_at=clock.now().replace(year=2027))

        stats = await delivery_service.process_due_events()

        assert stats["processed"] == 0
        webhook_client.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oldest_due_first_and_batch_bound(
        self, session_factory, webhook_client, add_subscription, add_event, clock
    ):
        """Selection is ordered by next_retry_at and capped by batch size."""
        subscription = await add_subscription()
        late = await add_event(subscription.id, log_index=0)
        early = await add_event(
            subscription.id, log_index=1, next_retry_at=clock.now().replace(hour=1)
        )
        service = WebhookDeliveryService(
            session_factory,
            webhook_client=webhook_client,
            clock=clock,
            batch_size=1,
        )

        await service.process_due_events()

        assert (await load_event(session_factory, early.id)).status == EventStatus.DELIVERED.value
        assert (await load_event(session_factory, late.id)).status == EventStatus.PENDING.value


class TestRetries:
    """Backoff and retry budget."""

    @pytest.mark.asyncio
    async def test_three_failures_stay_pending(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory, clock
    ):
        """Three 500s with max 5: PENDING, growing next_retry_at, three attempts."""
        subscription = await add_subscription()
        event = await add_event(subscription.id)
        webhook_client.send.return_value = ERROR_500
        schedule = []

        for _ in range(3):
            await delivery_service.process_due_events()
            reloaded = await load_event(session_factory, event.id)
            assert reloaded.status == EventStatus.PENDING.value
            schedule.append(naive(reloaded.next_retry_at) - naive(clock.now()))
            clock.advance(hours=1)

        assert reloaded.retry_count == 3
        assert [delay.total_seconds() for delay in schedule] == [120, 240, 480]
        attempts = await load_attempts(session_factory, event.id)
        assert len(attempts) == 3
        assert all(a.response_status == 500 and not a.success for a in attempts)

    @pytest.mark.asyncio
    async def test_retry_waits_for_backoff(
        self, delivery_service, webhook_client, add_subscription, add_event, clock
    ):
        """A failed event is not retried before its next_retry_at."""
        subscription = await add_subscription()
        await add_event(subscription.id)
        webhook_client.send.return_value = TIMEOUT

        await delivery_service.process_due_events()
        clock.advance(seconds=119)
        stats = await delivery_service.process_due_events()
        assert stats["processed"] == 0

        clock.advance(seconds=1)
        stats = await delivery_service.process_due_events()
        assert stats["retried"] == 1

    @pytest.mark.asyncio
    async def test_budget_exhaustion_then_replay(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory, clock
    ):
        """Five failed retries, then the sixth evaluation fails the event; replay revives it."""
        subscription = await add_subscription()
        event = await add_event(subscription.id)
        webhook_client.send.return_value = ERROR_500

        for evaluation in range(1, 7):
            stats = await delivery_service.process_due_events()
            reloaded = await load_event(session_factory, event.id)
            assert reloaded.retry_count <= 5
            if evaluation < 6:
                assert stats["retried"] == 1
                assert reloaded.status == EventStatus.PENDING.value
            clock.advance(hours=2)

        assert stats["failed"] == 1
        assert reloaded.status == EventStatus.FAILED.value
        assert reloaded.retry_count == 5
        assert len(await load_attempts(session_factory, event.id)) == 6

        # FAILED is terminal for the worker
        stats = await delivery_service.process_due_events()
        assert stats["processed"] == 0

        success, error = await delivery_service.replay_event(event.id)
        assert success and error is None
        replayed = await load_event(session_factory, event.id)
        assert replayed.status == EventStatus.PENDING.value
        assert replayed.retry_count == 0
        assert naive(replayed.next_retry_at) == naive(clock.now())

        webhook_client.send.return_value = OK
        stats = await delivery_service.process_due_events()
        assert stats["delivered"] == 1
        headers = webhook_client.send.await_args.kwargs["headers"]
        assert headers["X-Chainhook-Attempt"] == "7"

    @pytest.mark.asyncio
    async def test_one_attempt_per_transition(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory, clock
    ):
        """Every exit from PROCESSING writes exactly one attempt row."""
        subscription = await add_subscription()
        event = await add_event(subscription.id)
        webhook_client.send.side_effect = [ERROR_500, TIMEOUT, OK]

        for expected_attempts in (1, 2, 3):
            await delivery_service.process_due_events()
            assert len(await load_attempts(session_factory, event.id)) == expected_attempts
            clock.advance(hours=2)

        attempts = await load_attempts(session_factory, event.id)
        assert [a.success for a in attempts] == [False, False, True]
        assert attempts[1].response_status is None
        assert attempts[1].error.startswith("Timeout")
        assert (await load_event(session_factory, event.id)).status == EventStatus.DELIVERED.value


class TestDeferral:
    """Paused or missing subscriptions defer delivery."""

    @pytest.mark.asyncio
    async def test_paused_subscription_not_selected(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory
    ):
        """Events of paused subscriptions stay PENDING without attempts."""
        subscription = await add_subscription(status=SubscriptionStatus.PAUSED.value)
        event = await add_event(subscription.id)

        stats = await delivery_service.process_due_events()

        assert stats["processed"] == 0
        webhook_client.send.assert_not_awaited()
        reloaded = await load_event(session_factory, event.id)
        assert reloaded.status == EventStatus.PENDING.value
        assert await load_attempts(session_factory, event.id) == []

    @pytest.mark.asyncio
    async def test_paused_after_selection_is_released(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory, clock
    ):
        """Pausing between selection and claim returns the event untouched."""
        subscription = await add_subscription()
        event = await add_event(subscription.id, retry_count=2)
        original_due = naive((await load_event(session_factory, event.id)).next_retry_at)
        async with session_factory() as session:
            await session.execute(
                update(Subscription)
                .where(Subscription.id == subscription.id)
                .values(status=SubscriptionStatus.PAUSED.value)
            )
            await session.commit()

        outcome = await delivery_service.handler.deliver(event.id)

        assert outcome == "deferred"
        webhook_client.send.assert_not_awaited()
        reloaded = await load_event(session_factory, event.id)
        assert reloaded.status == EventStatus.PENDING.value
        assert reloaded.retry_count == 2
        assert naive(reloaded.next_retry_at) == original_due
        assert await load_attempts(session_factory, event.id) == []

    @pytest.mark.asyncio
    async def test_missing_subscription_defers(
        self, delivery_service, webhook_client, add_event, session_factory
    ):
        """Orphaned events are deferred, not failed."""
        event = await add_event(subscription_id=999)

        outcome = await delivery_service.handler.deliver(event.id)

        assert outcome == "deferred"
        assert (await load_event(session_factory, event.id)).status == EventStatus.PENDING.value


class TestClaim:
    """Atomic claim and stale recovery."""

    @pytest.mark.asyncio
    async def test_claim_is_exclusive(self, add_subscription, add_event, session_factory, clock):
        """Only one of two claims on the same event succeeds."""
        subscription = await add_subscription()
        event = await add_event(subscription.id)

        async with session_factory() as first, session_factory() as second:
            assert await CapturedEventRepository(first).claim(event.id, clock.now())
            await first.commit()
            assert not await CapturedEventRepository(second).claim(event.id, clock.now())

    @pytest.mark.asyncio
    async def test_claimed_event_is_skipped(
        self, delivery_service, webhook_client, add_subscription, add_event
    ):
        """Delivering an event someone else holds does nothing."""
        subscription = await add_subscription()
        event = await add_event(subscription.id, status=EventStatus.PROCESSING.value)

        outcome = await delivery_service.handler.deliver(event.id)

        assert outcome == "skipped"
        webhook_client.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_processing_counts_as_failed_attempt(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory, clock
    ):
        """An abandoned claim is re-queued with backoff and one attempt row."""
        subscription = await add_subscription()
        event = await add_event(subscription.id, status=EventStatus.PROCESSING.value)
        clock.advance(minutes=10)

        stats = await delivery_service.process_due_events()

        assert stats["recovered"] == 1
        assert stats["processed"] == 0
        webhook_client.send.assert_not_awaited()
        reloaded = await load_event(session_factory, event.id)
        assert reloaded.status == EventStatus.PENDING.value
        assert reloaded.retry_count == 1
        assert naive(reloaded.next_retry_at) - naive(clock.now()) == timedelta(seconds=120)
        [attempt] = await load_attempts(session_factory, event.id)
        assert attempt.success is False
        assert attempt.error.startswith("Abandoned in PROCESSING")

        clock.advance(minutes=2)
        stats = await delivery_service.process_due_events()
        assert stats["delivered"] == 1

    @pytest.mark.asyncio
    async def test_stale_processing_with_spent_budget_fails(
        self, delivery_service, add_subscription, add_event, session_factory, clock
    ):
        """An abandoned claim that already used every retry ends FAILED."""
        subscription = await add_subscription()
        event = await add_event(
            subscription.id, status=EventStatus.PROCESSING.value, retry_count=5
        )
        clock.advance(minutes=10)

        stats = await delivery_service.process_due_events()

        assert stats["recovered"] == 1
        reloaded = await load_event(session_factory, event.id)
        assert reloaded.status == EventStatus.FAILED.value
        assert reloaded.retry_count == 5
        assert len(await load_attempts(session_factory, event.id)) == 1

    @pytest.mark.asyncio
    async def test_recent_processing_not_recovered(
        self, delivery_service, add_subscription, add_event, session_factory, clock
    ):
        """In-flight claims younger than the stale threshold are left alone."""
        subscription = await add_subscription()
        event = await add_event(subscription.id, status=EventStatus.PROCESSING.value)
        clock.advance(minutes=1)

        stats = await delivery_service.process_due_events()

        assert stats["recovered"] == 0
        assert (await load_event(session_factory, event.id)).status == EventStatus.PROCESSING.value
        assert await load_attempts(session_factory, event.id) == []

    @pytest.mark.asyncio
    async def test_fail_claimed_ignores_resolved_event(
        self, delivery_service, add_subscription, add_event, session_factory
    ):
        """Recording a failure for an event no longer PROCESSING is a no-op."""
        subscription = await add_subscription()
        event = await add_event(subscription.id, status=EventStatus.DELIVERED.value)

        outcome = await delivery_service.handler.fail_claimed(
            event.id, WebhookDeliveryError("late")
        )

        assert outcome == "skipped"
        assert (await load_event(session_factory, event.id)).status == EventStatus.DELIVERED.value
        assert await load_attempts(session_factory, event.id) == []


class TestErrorIsolation:
    """One event's failure never aborts the batch."""

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded_and_retried(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory
    ):
        """An exception while sending one event records a failed attempt; the other is delivered."""
        subscription = await add_subscription()
        first = await add_event(subscription.id, log_index=0)
        second = await add_event(subscription.id, log_index=1)
        webhook_client.send.side_effect = [RuntimeError("bug"), OK]

        stats = await delivery_service.process_due_events()

        assert stats["retried"] == 1
        assert stats["delivered"] == 1
        assert stats["errors"] == 0
        crashed = await load_event(session_factory, first.id)
        assert crashed.status == EventStatus.PENDING.value
        assert crashed.retry_count == 1
        [attempt] = await load_attempts(session_factory, first.id)
        assert attempt.success is False
        assert attempt.error == "Internal error: RuntimeError: bug"
        assert (await load_event(session_factory, second.id)).status == EventStatus.DELIVERED.value

    @pytest.mark.asyncio
    async def test_repeated_crashes_exhaust_budget(
        self, delivery_service, webhook_client, add_subscription, add_event, session_factory, clock
    ):
        """A send that always raises still ends FAILED with one attempt per try."""
        subscription = await add_subscription()
        event = await add_event(subscription.id)
        webhook_client.send.side_effect = RuntimeError("bug")

        for _ in range(12):
            await delivery_service.process_due_events()
            clock.advance(minutes=10)

        reloaded = await load_event(session_factory, event.id)
        assert reloaded.status == EventStatus.FAILED.value
        assert reloaded.retry_count == 5
        assert webhook_client.send.await_count == 6
        assert len(await load_attempts(session_factory, event.id)) == 6
