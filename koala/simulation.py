"""Canned transcripts used when the AI providers cannot be reached.

The output only depends on the student's name, the mood emoji and the
language they picked, so the same submission always yields the same text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

HAPPY = "😊"
SAD = "😢"
ANGRY = "😠"
ANXIOUS = "😰"
NEUTRAL = "neutral"

MOOD_PHRASES: Dict[str, Dict[str, str]] = {
    "korean": {
        HAPPY: "기뻐요",
        SAD: "슬퍼요",
        ANGRY: "화가 나요",
        ANXIOUS: "불안해요",
        NEUTRAL: "괜찮아요",
    },
    "russian": {
        HAPPY: "радостно",
        SAD: "грустно",
        ANGRY: "очень обидно",
        ANXIOUS: "тревожно",
        NEUTRAL: "нормально",
    },
    "vietnamese": {
        HAPPY: "vui",
        SAD: "buồn",
        ANGRY: "tức giận",
        ANXIOUS: "lo lắng",
        NEUTRAL: "bình thường",
    },
    "chinese": {
        HAPPY: "很开心",
        SAD: "很难过",
        ANGRY: "很生气",
        ANXIOUS: "很焦虑",
        NEUTRAL: "还好",
    },
    "english": {
        HAPPY: "happy",
        SAD: "sad",
        ANGRY: "angry",
        ANXIOUS: "anxious",
        NEUTRAL: "okay",
    },
}

TEMPLATES: Dict[str, str] = {
    "korean": "안녕하세요, 저는 {name}입니다. 오늘은 {mood}. 선생님과 이야기하고 싶어요.",
    "russian": "Здравствуйте, меня зовут {name}. Сегодня мне {mood}. Я хочу поговорить с учителем.",
    "vietnamese": "Xin chào, em tên là {name}. Hôm nay em cảm thấy {mood}. Em muốn nói chuyện với thầy cô.",
    "chinese": "你好，我叫{name}。今天我{mood}。我想和老师谈一谈。",
    "english": "Hello, my name is {name}. Today I feel {mood}. I would like to talk with a teacher.",
}

FALLBACK_LANGUAGE = "korean"


@dataclass(frozen=True, slots=True)
class SimulatedTranscript:
    original: str
    translated: str


def mood_phrase(mood: str, language: str) -> str:
    phrases = MOOD_PHRASES.get(language, MOOD_PHRASES[FALLBACK_LANGUAGE])
    return phrases.get(mood, phrases[NEUTRAL])


def _render(name: str, mood: str, language: str) -> str:
    return TEMPLATES[language].format(name=name, mood=mood_phrase(mood, language))


class SimulationGenerator:
    """Build deterministic stand-in transcripts."""

    def generate(self, student: str, mood: str, language: str) -> SimulatedTranscript:
        if language not in TEMPLATES:
            language = FALLBACK_LANGUAGE
        translated = _render(student, mood, FALLBACK_LANGUAGE)
        if language == FALLBACK_LANGUAGE:
            return SimulatedTranscript(original=translated, translated=translated)
        return SimulatedTranscript(original=_render(student, mood, language), translated=translated)
