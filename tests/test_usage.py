from datetime import date, timedelta

from koala.errors import QuotaExceeded
from koala.models import UsageState
from koala.usage import SPEECH_DAILY_LIMIT, SPEECH_SAFETY_THRESHOLD, TRANSLATE_DAILY_LIMIT, UsageTracker


def test_limits_are_distinct_constants():
    assert SPEECH_SAFETY_THRESHOLD == 1.8
    assert SPEECH_DAILY_LIMIT == 2.0
    assert TRANSLATE_DAILY_LIMIT == 15000


def test_check_and_reset_is_idempotent_for_same_day(usage):
    usage.consume_speech(0.5)
    usage.consume_translate(120)

    usage.check_and_reset()
    usage.check_and_reset()

    assert usage.state.speech_minutes_used == 0.5
    assert usage.state.translate_chars_used == 120


def test_counters_reset_when_day_changes(usage, clock):
    usage.consume_speech(1.9)
    usage.consume_translate(14000)

    clock.current = clock.current + timedelta(days=1)
    snapshot = usage.remaining()

    assert snapshot.speech_minutes_used == 0.0
    assert snapshot.translate_chars_used == 0
    assert snapshot.date == clock.current


def test_stale_state_from_yesterday_is_cleared_before_reporting(clock):
    yesterday = clock.current - timedelta(days=1)
    tracker = UsageTracker(
        today=clock,
        state=UsageState(last_reset_date=yesterday, speech_minutes_used=1.5, translate_chars_used=9000),
    )

    snapshot = tracker.remaining()

    assert snapshot.speech_minutes_used == 0.0
    assert snapshot.translate_chars_used == 0
    assert tracker.state.last_reset_date == clock.current


def test_can_transcribe_denied_above_threshold(usage):
    usage.consume_speech(1.9)
    assert usage.can_transcribe(0.1) is False


def test_can_transcribe_allowed_at_threshold(usage):
    usage.consume_speech(1.8)
    assert usage.can_transcribe() is True


def test_can_transcribe_does_not_mutate(usage):
    usage.consume_speech(0.4)
    usage.can_transcribe(5.0)
    assert usage.state.speech_minutes_used == 0.4


def test_require_speech_capacity_reports_usage(usage):
    usage.consume_speech(1.95)

    try:
        usage.require_speech_capacity()
    except QuotaExceeded as exc:
        assert exc.usage is not None
        assert exc.usage.speech_minutes_used == 1.95
        assert exc.payload()["usage"]["speech"]["limit"] == 2.0
    else:
        raise AssertionError("Expected QuotaExceeded")


def test_remaining_reports_limits(usage):
    usage.consume_speech(0.5)
    usage.consume_translate(1000)

    snapshot = usage.remaining()

    assert snapshot.speech_minutes_remaining == 1.5
    assert snapshot.translate_chars_remaining == 14000
    assert snapshot.as_dict()["date"] == date(2024, 3, 15).isoformat()
