from datetime import date

import pytest

from koala.storage import Storage
from koala.usage import UsageTracker


class FakeClock:
    def __init__(self, current: date) -> None:
        self.current = current

    def __call__(self) -> date:
        return self.current


class FakeSpeechBackend:
    def __init__(self, segments=None, error=None):
        self.segments = segments if segments is not None else ["안녕하세요"]
        self.error = error
        self.calls = []

    def recognize(self, content, *, language_code):
        self.calls.append((content, language_code))
        if self.error is not None:
            raise self.error
        return list(self.segments)


class FakeTranslateBackend:
    def __init__(self, prefix="[ko] ", error=None):
        self.prefix = prefix
        self.error = error
        self.calls = []

    def translate(self, text, *, target_language):
        self.calls.append((text, target_language))
        if self.error is not None:
            raise self.error
        return self.prefix + text


@pytest.fixture
def clock():
    return FakeClock(date(2024, 3, 15))


@pytest.fixture
def usage(clock):
    return UsageTracker(today=clock)


@pytest.fixture
def storage(tmp_path):
    return Storage(db_path=tmp_path / "records.db")


@pytest.fixture
def speech_backend():
    return FakeSpeechBackend()


@pytest.fixture
def translate_backend():
    return FakeTranslateBackend()
