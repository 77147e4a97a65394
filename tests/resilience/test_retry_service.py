import pytest

from storeops.utils.resilience.dead_letter.queue import DeadLetterQueue
from storeops.utils.resilience.retry.service import RetryOptions, RetryService, RetryTask

pytestmark = pytest.mark.asyncio


class FailingSessionFactory:
    def __call__(self):
        raise RuntimeError("database unreachable")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(dlq, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return RetryService(dlq, sleep=fake_sleep, rng=lambda: 0.5)


def flaky(failures, result="done"):
    calls = {"n": 0}

    async def action():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise ConnectionError(f"attempt {calls['n']} failed")
        return result

    return action, calls


async def test_success_on_first_attempt(service, sleeps):
    action, calls = flaky(0)
    outcome = await service.execute("orders", action)
    assert outcome.success is True
    assert outcome.data == "done"
    assert outcome.attempts == 1
    assert outcome.dlq_id is None
    assert sleeps == []


async def test_recovers_after_transient_failures(service, sleeps):
    action, calls = flaky(2)
    outcome = await service.execute("orders", action, RetryOptions(max_retries=3))
    assert outcome.success is True
    assert outcome.attempts == 3
    # rng 0.5 means zero jitter
    assert sleeps == [1.0, 2.0]


async def test_exhaustion_writes_one_dead_letter_record(service, dlq):
    action, calls = flaky(10)
    outcome = await service.execute(
        "notifications",
        action,
        RetryOptions(max_retries=3, payload={"sku": "A-1"}, original_id="job-7"),
    )
    assert outcome.success is False
    assert outcome.attempts == 4
    assert calls["n"] == 4
    assert isinstance(outcome.error, ConnectionError)
    assert outcome.dlq_id is not None

    items = await dlq.get_dlq_items("notifications")
    assert len(items) == 1
    record = items[0]
    assert record.id == outcome.dlq_id
    assert record.attempts == 4
    assert record.max_attempts == 4
    assert record.payload == {"sku": "A-1"}
    assert record.original_id == "job-7"
    assert record.error_message == "attempt 4 failed"


async def test_fail_five_with_two_retries(service):
    action, calls = flaky(5)
    outcome = await service.execute(
        "orders", action, RetryOptions(max_retries=2, payload={"order": 1})
    )
    assert outcome.attempts == 3
    assert calls["n"] == 3
    assert outcome.dlq_id is not None


async def test_no_payload_means_no_record(service, dlq):
    action, _ = flaky(10)
    outcome = await service.execute("orders", action, RetryOptions(max_retries=1))
    assert outcome.success is False
    assert outcome.dlq_id is None
    assert await dlq.get_dlq_stats() == {}


async def test_should_retry_veto_stops_early(service, sleeps):
    action, calls = flaky(10)
    seen = []

    def only_first(error, attempt):
        seen.append(attempt)
        return attempt < 2

    outcome = await service.execute(
        "orders",
        action,
        RetryOptions(max_retries=5, should_retry=only_first, payload={"id": 3}),
    )
    assert outcome.attempts == 2
    assert calls["n"] == 2
    assert seen == [1, 2]
    assert len(sleeps) == 1
    assert outcome.dlq_id is not None


async def test_on_retry_receives_error_attempt_and_delay(service):
    action, _ = flaky(2)
    hooks = []

    def on_retry(error, attempt, delay_ms):
        hooks.append((str(error), attempt, delay_ms))

    await service.execute(
        "orders", action, RetryOptions(max_retries=3, initial_delay_ms=100, on_retry=on_retry)
    )
    assert hooks == [("attempt 1 failed", 1, 100), ("attempt 2 failed", 2, 200)]


async def test_failing_on_retry_hook_does_not_abort(service):
    action, calls = flaky(1)

    def broken(error, attempt, delay_ms):
        raise ValueError("hook bug")

    outcome = await service.execute(
        "orders", action, RetryOptions(max_retries=2, on_retry=broken)
    )
    assert outcome.success is True
    assert calls["n"] == 2


async def test_dead_letter_write_failure_keeps_original_error(sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    broken_dlq = DeadLetterQueue(session_factory=FailingSessionFactory(), enabled=True)
    service = RetryService(broken_dlq, sleep=fake_sleep)
    action, _ = flaky(10)

    outcome = await service.execute(
        "orders", action, RetryOptions(max_retries=1, payload={"id": 1})
    )
    assert outcome.success is False
    assert isinstance(outcome.error, ConnectionError)
    assert outcome.dlq_id is None


async def test_disabled_dead_letter_queue_drops_record(session_factory, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    service = RetryService(
        DeadLetterQueue(session_factory=session_factory, enabled=False), sleep=fake_sleep
    )
    action, _ = flaky(10)
    outcome = await service.execute(
        "orders", action, RetryOptions(max_retries=0, payload={"id": 1})
    )
    assert outcome.attempts == 1
    assert outcome.dlq_id is None


async def test_execute_all_preserves_input_order(service):
    good, _ = flaky(0, result="a")
    bad, _ = flaky(10)
    late, _ = flaky(1, result="c")

    outcomes = await service.execute_all(
        "batch",
        [RetryTask(good), RetryTask(bad, None, "t-2"), (late, None, "t-3")],
        RetryOptions(max_retries=1),
    )
    assert [o.success for o in outcomes] == [True, False, True]
    assert outcomes[0].data == "a"
    assert outcomes[2].data == "c"
    assert outcomes[2].attempts == 2


async def test_options_validation():
    with pytest.raises(ValueError):
        RetryOptions(max_retries=-1)
    with pytest.raises(ValueError):
        RetryOptions(backoff_factor=0.5)
    assert RetryOptions(max_retries=3).max_attempts == 4


async def test_reprocess_resolves_on_success(service, dlq):
    action, _ = flaky(10)
    outcome = await service.execute(
        "notifications", action, RetryOptions(max_retries=0, payload={"to": "store-12"})
    )

    received = []

    async def handler(payload):
        received.append(payload)
        return "sent"

    result = await service.reprocess_dlq_item(outcome.dlq_id, handler, "ops-bot")
    assert result.success is True
    assert result.resolved is True
    assert result.data == "sent"
    assert received == [{"to": "store-12"}]

    record = await dlq.get_dlq_item(outcome.dlq_id, pending_only=False)
    assert record.resolution_type == "reprocessed"
    assert record.resolved_by == "ops-bot"


async def test_reprocess_failure_leaves_record_pending(service, dlq):
    action, _ = flaky(10)
    outcome = await service.execute(
        "notifications", action, RetryOptions(max_retries=0, payload={"to": "store-12"})
    )

    async def still_broken(payload):
        raise ConnectionError("still down")

    result = await service.reprocess_dlq_item(outcome.dlq_id, still_broken, "ops-bot")
    assert result.success is False
    assert result.resolved is False
    assert result.attempts == 1
    assert await dlq.get_dlq_stats() == {"notifications": {"pending": 1, "resolved": 0}}


async def test_reprocess_unknown_record(service):
    async def handler(payload):
        return payload

    result = await service.reprocess_dlq_item("missing-id", handler, "ops-bot")
    assert result.success is False
    assert result.attempts == 0
    assert isinstance(result.error, LookupError)


async def test_single_attempt_failure_returns_the_error(service, sleeps):
    action, calls = flaky(1)
    outcome = await service.execute("orders", action, RetryOptions(max_retries=0))
    assert outcome.success is False
    assert outcome.attempts == 1
    assert str(outcome.error) == "attempt 1 failed"
    assert sleeps == []
