from __future__ import annotations

import threading
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import speech_output
from models import SpeechEvent, SpeechEventKind, SpeechOptions
from speech_output import Pyttsx3SpeechOutput


class FakeEngine:
    def __init__(self) -> None:
        self.spoken: list[str] = []
        self.properties: dict[str, object] = {}
        self.voices = [
            SimpleNamespace(id="voice-fr", languages=[b"\x05fr"]),
            SimpleNamespace(id="voice-en", languages=["en_US"]),
        ]

    def say(self, text: str) -> None:
        self.spoken.append(text)

    def runAndWait(self) -> None:  # noqa: N802
        pass

    def setProperty(self, name: str, value: object) -> None:  # noqa: N802
        self.properties[name] = value

    def getProperty(self, name: str) -> object:  # noqa: N802
        return self.voices if name == "voices" else None

    def stop(self) -> None:
        pass


class Collector:
    def __init__(self, until: int) -> None:
        self.events: list[SpeechEvent] = []
        self._until = until
        self.done = threading.Event()

    def __call__(self, event: SpeechEvent) -> None:
        self.events.append(event)
        if sum(e.kind != SpeechEventKind.STARTED for e in self.events) >= self._until:
            self.done.set()


def _fake_module(engine: FakeEngine) -> MagicMock:
    module = MagicMock()
    module.init.return_value = engine
    return module


def test_speak_reports_started_then_done_and_applies_options() -> None:
    engine = FakeEngine()
    collector = Collector(until=1)
    output = Pyttsx3SpeechOutput()
    output.subscribe(collector)

    with patch.object(speech_output, "pyttsx3", _fake_module(engine)):
        output.speak("hello", SpeechOptions(locale="en-US", rate=0.9), utterance_id=7)
        assert collector.done.wait(2.0)
        output.close()

    assert [(e.kind, e.utterance_id) for e in collector.events] == [
        (SpeechEventKind.STARTED, 7),
        (SpeechEventKind.DONE, 7),
    ]
    assert engine.spoken == ["hello"]
    assert engine.properties["rate"] == 180
    assert engine.properties["voice"] == "voice-en"


def test_engine_failure_reports_error() -> None:
    module = MagicMock()
    module.init.side_effect = RuntimeError("no audio device")
    collector = Collector(until=1)
    output = Pyttsx3SpeechOutput()
    output.subscribe(collector)

    with patch.object(speech_output, "pyttsx3", module):
        output.speak("hello", SpeechOptions(), utterance_id=3)
        assert collector.done.wait(2.0)

    assert collector.events[-1].kind == SpeechEventKind.ERROR
    assert collector.events[-1].utterance_id == 3


def test_missing_library_reports_error_synchronously() -> None:
    events: list[SpeechEvent] = []
    output = Pyttsx3SpeechOutput()
    output.subscribe(events.append)

    with patch.object(speech_output, "pyttsx3", None):
        output.speak("hello", SpeechOptions(), utterance_id=1)

    assert [(e.kind, e.utterance_id) for e in events] == [(SpeechEventKind.ERROR, 1)]


def test_stop_with_nothing_queued_is_silent() -> None:
    events: list[SpeechEvent] = []
    output = Pyttsx3SpeechOutput()
    output.subscribe(events.append)

    output.stop()

    assert events == []
