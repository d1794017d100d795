"""Shared pytest fixtures for Timbra tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any

import pytest

from timbra.config import DEFAULT_FILLER_WORDS, Settings
from timbra.core.session import SessionBackends, SessionConfig, SessionController
from timbra.services.llm.protocol import Message
from timbra.services.telephony.exceptions import TransportError
from timbra.services.tts.protocol import VoiceProfile

_UNSET: Any = object()


def build_settings(**overrides) -> Settings:
    """Create a Settings object with safe test defaults."""
    base = {
        "groq_api_key": "test-groq-key",
        "deepgram_api_key": "test-deepgram-key",
        "elevenlabs_api_key": "test-elevenlabs-key",
        "environment": "development",
        "public_base_url": "bridge.example.com",
    }
    base.update(overrides)
    return Settings(**base)


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Return a factory to build Settings with overrides."""
    return build_settings


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Default Settings fixture."""
    return settings_factory()


def build_session_config(**overrides) -> SessionConfig:
    """SessionConfig tuned for fast, deterministic session tests."""
    base: dict[str, Any] = {
        "endpoint_poll_ms": 5.0,
        "filler_words": list(DEFAULT_FILLER_WORDS),
        "greeting_text": None,
        "playback_grace_ms": 0.0,
        "use_playback_marks": False,
        "stt_timeout_s": 1.0,
        "llm_timeout_s": 1.0,
        "tts_timeout_s": 1.0,
    }
    base.update(overrides)
    return SessionConfig(**base)


@pytest.fixture
def session_config_factory() -> Callable[..., SessionConfig]:
    return build_session_config


# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StageTracker:
    """Counts concurrently running backend calls across all fakes."""

    def __init__(self) -> None:
        self.active = 0
        self.max_active = 0

    def enter(self) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)

    def exit(self) -> None:
        self.active -= 1


class FakeBackend:
    """Base for scripted backends.

    ``result`` is returned, or raised when it is an exception. ``delay``
    keeps the call pending; ``gate`` blocks until it is set.
    """

    def __init__(
        self,
        result: Any,
        *,
        tracker: StageTracker | None = None,
        delay: float = 0.0,
    ) -> None:
        self.result = result
        self.tracker = tracker or StageTracker()
        self.delay = delay
        self.gate: asyncio.Event | None = None
        self.calls: list[Any] = []
        self.cancelled = 0
        self.closed = False

    async def _call(self, argument: Any) -> Any:
        self.calls.append(argument)
        self.tracker.enter()
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.tracker.exit()

        if isinstance(self.result, BaseException):
            raise self.result
        return self.result

    async def close(self) -> None:
        self.closed = True


class FakeTranscriber(FakeBackend):
    def __init__(self, result: Any = "Ich möchte einen Termin am Montag", **kwargs) -> None:
        super().__init__(result, **kwargs)
        self.languages: list[str] = []

    async def transcribe(self, audio: bytes, *, language: str = "de") -> str:
        self.languages.append(language)
        return await self._call(audio)


class FakeResponder(FakeBackend):
    def __init__(self, result: Any = "Gerne, um wie viel Uhr?", **kwargs) -> None:
        super().__init__(result, **kwargs)

    async def respond(self, messages: list[Message]) -> str:
        return await self._call(list(messages))


class FakeSynthesizer(FakeBackend):
    def __init__(self, result: Any = b"\x7f" * 800, **kwargs) -> None:
        super().__init__(result, **kwargs)

    async def synthesize(self, text: str, voice: VoiceProfile) -> bytes:
        return await self._call(text)


class FakeTransport:
    """Records everything the session sends to the caller."""

    def __init__(self, *, fail: bool = False) -> None:
        self.media: list[tuple[str, bytes]] = []
        self.marks: list[tuple[str, str]] = []
        self.clears: list[str] = []
        self.fail = fail

    async def send_media(self, stream_id: str, payload: bytes) -> None:
        if self.fail:
            raise TransportError("connection lost")
        self.media.append((stream_id, payload))

    async def send_mark(self, stream_id: str, name: str) -> None:
        self.marks.append((stream_id, name))

    async def send_clear(self, stream_id: str) -> None:
        self.clears.append(stream_id)


def build_backends(
    *,
    transcript: Any = _UNSET,
    reply: Any = _UNSET,
    audio: Any = _UNSET,
) -> SessionBackends:
    """SessionBackends made of fakes sharing one StageTracker.

    Each result may be an exception instance, which the fake raises.
    """
    tracker = StageTracker()
    transcriber = FakeTranscriber(tracker=tracker)
    responder = FakeResponder(tracker=tracker)
    synthesizer = FakeSynthesizer(tracker=tracker)
    if transcript is not _UNSET:
        transcriber.result = transcript
    if reply is not _UNSET:
        responder.result = reply
    if audio is not _UNSET:
        synthesizer.result = audio
    return SessionBackends(
        transcriber=transcriber,
        responder=responder,
        synthesizer=synthesizer,
        voice=VoiceProfile(voice_id="test-voice"),
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or fail the test."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def backends_factory() -> Callable[..., SessionBackends]:
    return build_backends


@pytest.fixture
def wait_for() -> Callable[..., Any]:
    """Async helper: ``await wait_for(lambda: cond)``."""
    return wait_until


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def session_factory(fake_transport, fake_clock) -> Callable[..., SessionController]:
    """Build a SessionController wired to the fake transport and clock."""

    def factory(backends: SessionBackends | None = None, **config_overrides) -> SessionController:
        return SessionController(
            fake_transport,
            backends or build_backends(),
            build_session_config(**config_overrides),
            session_id="test-session",
            clock=fake_clock,
        )

    return factory


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def fake_backends() -> SessionBackends:
    return build_backends()


@pytest.fixture
def app_factory(settings_factory, fake_backends):
    """Build an app with test settings and fake backends."""
    from timbra.main import create_app

    def factory(**overrides):
        return create_app(settings_factory(**overrides), backends=fake_backends)

    return factory


@pytest.fixture
def test_client(app_factory) -> Generator:
    """FastAPI TestClient backed by fake STT/LLM/TTS clients."""
    from fastapi.testclient import TestClient

    with TestClient(app_factory()) as client:
        yield client
