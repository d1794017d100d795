"""Per-call session controller.

One ``SessionController`` exists per bridged call. It owns the turn
buffer, the conversation history and the state machine:

    AWAITING_START → LISTENING → TRANSCRIBING → RESPONDING
        → SYNTHESIZING → SPEAKING → LISTENING ...

Every transport event and every backend result goes through the
session's queue and is applied by a single task (``run``), so state is
never mutated concurrently. Backend calls run as one in-flight stage task
that posts a ``StageCompleted`` back to the queue.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Any, Literal

from timbra.config import Settings, get_settings
from timbra.core.chunker import chunk_frames
from timbra.core.codec import (
    compute_audio_energy,
    is_speech,
    mulaw_decode,
    mulaw_duration_ms,
    mulaw_frames_to_wav,
)
from timbra.core.conversation_state import ConversationState, Speaker
from timbra.core.events import (
    CloseEvent,
    MarkEvent,
    MediaEvent,
    PlaybackFinished,
    SessionEvent,
    Stage,
    StageCompleted,
    StartEvent,
    StopEvent,
)
from timbra.core.transcript_filter import TranscriptFilter
from timbra.core.turn_buffer import AudioFrame, Track, TurnBuffer, TurnTrigger
from timbra.logging_config import get_logger
from timbra.observability.metrics import (
    ACTIVE_CALLS,
    BARGE_IN_TOTAL,
    FRAMES_DROPPED,
    record_call_metrics,
    record_stage,
    record_turn,
)
from timbra.services.llm.exceptions import EmptyResponseError, ResponderError
from timbra.services.llm.protocol import ResponderClient
from timbra.services.stt.exceptions import TranscriptionError
from timbra.services.stt.protocol import TranscribeClient
from timbra.services.telephony.exceptions import TransportError
from timbra.services.telephony.protocol import Transport
from timbra.services.tts.exceptions import SynthesisError
from timbra.services.tts.protocol import SynthesizeClient, VoiceProfile

logger: Any = get_logger(__name__)

# Backend failures a session recovers from by returning to LISTENING
RECOVERABLE_ERRORS = (TranscriptionError, ResponderError, SynthesisError, TimeoutError)


class SessionState(Enum):
    """State machine for one call."""

    AWAITING_START = auto()  # Connection open, no start event yet
    LISTENING = auto()  # Accumulating caller audio
    TRANSCRIBING = auto()  # Turn audio sent to STT
    RESPONDING = auto()  # Transcript sent to the LLM
    SYNTHESIZING = auto()  # Reply sent to TTS
    SPEAKING = auto()  # Reply audio playing on the call
    CLOSED = auto()  # Terminal


PIPELINE_STATES = frozenset({
    SessionState.TRANSCRIBING,
    SessionState.RESPONDING,
    SessionState.SYNTHESIZING,
    SessionState.SPEAKING,
})

ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.AWAITING_START: frozenset({SessionState.LISTENING, SessionState.CLOSED}),
    SessionState.LISTENING: frozenset({
        SessionState.TRANSCRIBING,
        SessionState.SYNTHESIZING,  # greeting turn
        SessionState.CLOSED,
    }),
    SessionState.TRANSCRIBING: frozenset({
        SessionState.RESPONDING,
        SessionState.LISTENING,
        SessionState.CLOSED,
    }),
    SessionState.RESPONDING: frozenset({
        SessionState.SYNTHESIZING,
        SessionState.LISTENING,
        SessionState.CLOSED,
    }),
    SessionState.SYNTHESIZING: frozenset({
        SessionState.SPEAKING,
        SessionState.LISTENING,
        SessionState.CLOSED,
    }),
    SessionState.SPEAKING: frozenset({SessionState.LISTENING, SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}

_STAGE_STATES = {
    Stage.TRANSCRIBE: SessionState.TRANSCRIBING,
    Stage.RESPOND: SessionState.RESPONDING,
    Stage.SYNTHESIZE: SessionState.SYNTHESIZING,
}


class InvalidTransitionError(RuntimeError):
    """Raised when the controller attempts a transition the machine forbids."""


@dataclass
class SessionConfig:
    """Tunables for one session."""

    # Endpointing
    silence_timeout_ms: float = 1000.0
    min_turn_frames: int = 10
    max_buffer_frames: int = 750
    vad_energy_threshold: float = 250.0
    endpoint_poll_ms: float = 20.0

    # Junk filter
    filler_words: list[str] = field(default_factory=list)
    junk_max_chars: int = 24
    junk_min_chars: int = 2

    # Barge-in
    barge_in_mode: Literal["drop", "interrupt"] = "drop"
    barge_in_threshold: float = 500.0

    # Playback
    sample_rate: int = 8000
    frame_size_bytes: int = 160
    playback_grace_ms: float = 300.0
    use_playback_marks: bool = True

    # Backend timeouts (seconds)
    stt_timeout_s: float = 10.0
    llm_timeout_s: float = 15.0
    tts_timeout_s: float = 10.0

    # Conversation
    language: str = "de"
    greeting_text: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SessionConfig:
        """Create config from application settings."""
        s = settings or get_settings()
        return cls(
            silence_timeout_ms=s.silence_timeout_ms,
            min_turn_frames=s.min_turn_frames,
            max_buffer_frames=s.max_buffer_frames,
            vad_energy_threshold=s.vad_energy_threshold,
            endpoint_poll_ms=s.endpoint_poll_ms,
            filler_words=list(s.filler_words),
            junk_max_chars=s.junk_max_chars,
            junk_min_chars=s.junk_min_chars,
            barge_in_mode=s.barge_in_mode,
            barge_in_threshold=s.barge_in_threshold,
            sample_rate=s.sample_rate,
            frame_size_bytes=s.frame_size_bytes,
            playback_grace_ms=s.playback_grace_ms,
            use_playback_marks=s.use_playback_marks,
            stt_timeout_s=s.stt_timeout_s,
            llm_timeout_s=s.llm_timeout_s,
            tts_timeout_s=s.tts_timeout_s,
            language=s.language,
            greeting_text=s.greeting_text or None,
        )

    @property
    def silence_timeout_s(self) -> float:
        return self.silence_timeout_ms / 1000


@dataclass(frozen=True, slots=True)
class SessionBackends:
    """Shared backend clients a session calls into."""

    transcriber: TranscribeClient
    responder: ResponderClient
    synthesizer: SynthesizeClient
    voice: VoiceProfile


@dataclass(frozen=True, slots=True)
class StageFailure:
    """A recoverable backend failure recorded on the session."""

    turn_id: int
    stage: Stage
    kind: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class Turn:
    """In-flight pipeline work for one caller turn (or the greeting)."""

    turn_id: int
    trigger: TurnTrigger | None = None
    frame_count: int = 0
    user_text: str | None = None
    reply_text: str | None = None
    is_greeting: bool = False
    mark_name: str | None = None


@dataclass
class SessionMetrics:
    """Per-call counters, logged when the call ends."""

    frames_received: int = 0
    frames_dropped: int = 0
    frames_sent: int = 0
    turns_started: int = 0
    turns_completed: int = 0
    turns_discarded: int = 0
    barge_in_count: int = 0
    stage_latencies_ms: dict[str, list[float]] = field(default_factory=dict)

    def add_latency(self, stage: Stage, elapsed_ms: float) -> None:
        self.stage_latencies_ms.setdefault(stage.value, []).append(elapsed_ms)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "frames_received": self.frames_received,
            "frames_dropped": self.frames_dropped,
            "frames_sent": self.frames_sent,
            "turns_started": self.turns_started,
            "turns_completed": self.turns_completed,
            "turns_discarded": self.turns_discarded,
            "barge_in_count": self.barge_in_count,
            **{
                f"avg_{stage}_ms": round(sum(values) / len(values), 1)
                for stage, values in self.stage_latencies_ms.items()
                if values
            },
        }


class SessionController:
    """Drives one call through listen → transcribe → respond → speak.

    Events are fed in with ``submit`` and applied by ``run``. Only the
    task running ``run`` touches session state.

    Args:
        transport: Outbound half of the media connection
        backends: Shared STT / LLM / TTS clients
        config: Session tunables
        session_id: Identifier for logs (random when omitted)
        clock: Monotonic clock in seconds, injectable for tests
    """

    def __init__(
        self,
        transport: Transport,
        backends: SessionBackends,
        config: SessionConfig | None = None,
        *,
        session_id: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self._transport = transport
        self._backends = backends
        self._config = config or SessionConfig.from_settings()
        self._clock = clock

        self._state = SessionState.AWAITING_START
        self.transitions: list[tuple[SessionState, SessionState]] = []

        self.turn_buffer = TurnBuffer()
        self.conversation = ConversationState()
        self.stream_sid: str | None = None
        self.outbound_seq = 0
        self.errors: list[StageFailure] = []
        self.metrics = SessionMetrics()

        self._filter = TranscriptFilter(
            self._config.filler_words,
            max_chars=self._config.junk_max_chars,
            min_chars=self._config.junk_min_chars,
        )
        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._turn: Turn | None = None
        self._turn_seq = 0
        self._stage_task: asyncio.Task[None] | None = None
        self._playback_task: asyncio.Task[None] | None = None
        self._inbound_ended = False
        self._started_at: float | None = None
        self._close_reason: str | None = None
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def is_closed(self) -> bool:
        return self._state == SessionState.CLOSED

    @property
    def close_reason(self) -> str | None:
        return self._close_reason

    @property
    def current_turn_id(self) -> int | None:
        return self._turn.turn_id if self._turn else None

    def submit(self, event: SessionEvent) -> None:
        """Queue an event for the session task. Ignored once closed."""
        if self.is_closed:
            return
        self._queue.put_nowait(event)

    async def wait_closed(self) -> None:
        """Block until the session reaches CLOSED."""
        await self._closed.wait()

    async def run(self) -> None:
        """Session event loop; returns once the session is CLOSED."""
        poll_s = self._config.endpoint_poll_ms / 1000
        logger.debug(f"Session {self.id} loop started")

        try:
            while not self.is_closed:
                try:
                    event = await asyncio.wait_for(self._queue.get(), timeout=poll_s)
                except TimeoutError:
                    event = None

                try:
                    if event is not None:
                        await self.handle(event)
                    await self.tick()
                except TransportError as e:
                    logger.error(f"Session {self.id} transport failed: {e}")
                    await self.close(reason="transport_error")
        finally:
            if not self.is_closed:
                await self.close(reason="cancelled")

    async def handle(self, event: SessionEvent) -> None:
        """Apply one event to the session."""
        if self.is_closed:
            return

        if isinstance(event, MediaEvent):
            await self._on_media(event)
        elif isinstance(event, StageCompleted):
            await self._on_stage_completed(event)
        elif isinstance(event, PlaybackFinished):
            self._on_playback_finished(event)
        elif isinstance(event, MarkEvent):
            self._on_mark(event)
        elif isinstance(event, StartEvent):
            await self._on_start(event)
        elif isinstance(event, StopEvent):
            self._inbound_ended = True
            logger.info(f"Session {self.id} inbound stream stopped")
        elif isinstance(event, CloseEvent):
            await self.close(reason=event.reason or "transport_closed")

    async def tick(self) -> None:
        """Evaluate time-based triggers (silence endpointing)."""
        if self._state != SessionState.LISTENING or self.turn_buffer.is_empty:
            return

        now = self._clock()
        trigger = self.turn_buffer.check_trigger(
            now,
            silence_timeout_s=self._config.silence_timeout_s,
            min_frames=self._config.min_turn_frames,
            max_frames=self._config.max_buffer_frames,
        )
        if trigger is not None:
            self._end_listening(trigger)
        elif self.turn_buffer.is_stale(now, silence_timeout_s=self._config.silence_timeout_s):
            dropped = self.turn_buffer.clear()
            self.metrics.turns_discarded += 1
            FRAMES_DROPPED.labels(reason="short_turn").inc(dropped)
            record_turn("too_short")
            logger.debug(f"Session {self.id} discarded {dropped} frames of noise")

    async def close(self, reason: str = "closed") -> None:
        """Tear the session down. Idempotent."""
        if self.is_closed:
            return

        previous = self._state
        self._close_reason = reason
        self._transition(SessionState.CLOSED)
        self._turn = None

        await self._cancel_task(self._stage_task)
        await self._cancel_task(self._playback_task)
        self._stage_task = None
        self._playback_task = None

        discarded = self.turn_buffer.clear()
        duration_s = self._clock() - self._started_at if self._started_at is not None else 0.0

        if previous != SessionState.AWAITING_START:
            ACTIVE_CALLS.dec()
            record_call_metrics(
                outcome="transport_error" if reason == "transport_error" else "completed",
                duration_seconds=duration_s,
            )

        logger.info(
            f"Session {self.id} closed ({reason}) after {duration_s:.1f}s, "
            f"{len(self.conversation)} utterances, {discarded} frames discarded, "
            f"metrics={self.metrics.to_dict()}"
        )
        self._closed.set()

    def get_metrics(self) -> dict[str, Any]:
        """Per-call counters and identifiers."""
        return {
            "session_id": self.id,
            "call_sid": self.conversation.call_sid,
            "stream_sid": self.stream_sid,
            "state": self._state.name,
            "outbound_seq": self.outbound_seq,
            "history_length": len(self.conversation),
            "error_count": len(self.errors),
            **self.metrics.to_dict(),
        }

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    async def _on_start(self, event: StartEvent) -> None:
        if self._state != SessionState.AWAITING_START:
            logger.warning(f"Session {self.id} ignoring duplicate start event")
            return

        self.stream_sid = event.stream_sid
        self.conversation.stream_sid = event.stream_sid
        self.conversation.call_sid = event.call_sid or None
        self._started_at = self._clock()
        ACTIVE_CALLS.inc()

        logger.info(
            f"Session {self.id} started: stream={event.stream_sid} "
            f"call={event.call_sid} tracks={','.join(event.tracks)}"
        )
        self._transition(SessionState.LISTENING)

        if self._config.greeting_text:
            turn = self._begin_turn(is_greeting=True)
            turn.reply_text = self._config.greeting_text
            self._transition(SessionState.SYNTHESIZING)
            self._launch_synthesis(turn)

    async def _on_media(self, event: MediaEvent) -> None:
        self.metrics.frames_received += 1

        if event.track != Track.INBOUND:
            self._drop_frame("outbound_track")
            return
        if self._inbound_ended:
            self._drop_frame("after_stop")
            return

        if self._state == SessionState.LISTENING:
            self._accumulate(event.payload)
        elif self._state == SessionState.SPEAKING:
            if self._config.barge_in_mode == "interrupt" and self._is_barge_in(event.payload):
                await self._interrupt(event.payload)
            else:
                self._drop_frame("speaking")
        elif self._state == SessionState.AWAITING_START:
            self._drop_frame("not_started")
        else:
            self._drop_frame("processing")

    def _on_mark(self, event: MarkEvent) -> None:
        turn = self._turn
        if (
            self._state == SessionState.SPEAKING
            and turn is not None
            and turn.mark_name == event.name
        ):
            self._finish_speaking(turn, source="mark")
        else:
            logger.debug(f"Session {self.id} ignoring mark {event.name}")

    def _on_playback_finished(self, event: PlaybackFinished) -> None:
        turn = self._turn
        if (
            self._state != SessionState.SPEAKING
            or turn is None
            or turn.turn_id != event.turn_id
        ):
            logger.debug(f"Session {self.id} ignoring stale playback end for turn {event.turn_id}")
            return
        self._finish_speaking(turn, source=event.source)

    # ------------------------------------------------------------------
    # Listening
    # ------------------------------------------------------------------

    def _accumulate(self, payload: bytes) -> None:
        voiced = self._is_voiced(payload)
        if not voiced and self.turn_buffer.is_empty:
            # Leading silence never opens a turn
            return

        self.turn_buffer.append(
            AudioFrame(payload=payload, received_at=self._clock(), voiced=voiced)
        )
        if self.turn_buffer.frame_count >= self._config.max_buffer_frames:
            self._end_listening(TurnTrigger.OVERFLOW)

    def _is_voiced(self, payload: bytes) -> bool:
        threshold = self._config.vad_energy_threshold
        if threshold <= 0:
            return True
        return compute_audio_energy(mulaw_decode(payload)) >= threshold

    def _is_barge_in(self, payload: bytes) -> bool:
        return is_speech(mulaw_decode(payload), self._config.barge_in_threshold)

    def _end_listening(self, trigger: TurnTrigger) -> None:
        frames = self.turn_buffer.drain()
        turn = self._begin_turn(trigger=trigger, frame_count=len(frames))
        self._transition(SessionState.TRANSCRIBING)

        logger.info(
            f"Session {self.id} turn {turn.turn_id} ended by {trigger.value} "
            f"with {len(frames)} frames"
        )
        audio = mulaw_frames_to_wav([frame.payload for frame in frames], self._config.sample_rate)
        self._launch(
            turn,
            Stage.TRANSCRIBE,
            lambda: self._backends.transcriber.transcribe(audio, language=self._config.language),
            self._config.stt_timeout_s,
        )

    def _drop_frame(self, reason: str) -> None:
        self.metrics.frames_dropped += 1
        FRAMES_DROPPED.labels(reason=reason).inc()

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _begin_turn(
        self,
        *,
        trigger: TurnTrigger | None = None,
        frame_count: int = 0,
        is_greeting: bool = False,
    ) -> Turn:
        self._turn_seq += 1
        self._turn = Turn(
            turn_id=self._turn_seq,
            trigger=trigger,
            frame_count=frame_count,
            is_greeting=is_greeting,
        )
        self.metrics.turns_started += 1
        return self._turn

    def _launch(
        self,
        turn: Turn,
        stage: Stage,
        call: Callable[[], Awaitable[Any]],
        timeout_s: float,
    ) -> None:
        if self._stage_task is not None and not self._stage_task.done():
            raise InvalidTransitionError(
                f"Session {self.id} cannot start {stage.value} while another stage runs"
            )
        self._stage_task = asyncio.create_task(
            self._run_stage(turn.turn_id, stage, call, timeout_s),
            name=f"{stage.value}-{self.id}-{turn.turn_id}",
        )

    async def _run_stage(
        self,
        turn_id: int,
        stage: Stage,
        call: Callable[[], Awaitable[Any]],
        timeout_s: float,
    ) -> None:
        start_time = time.perf_counter()
        try:
            result = await asyncio.wait_for(call(), timeout=timeout_s)
            completed = StageCompleted(
                turn_id=turn_id,
                stage=stage,
                result=result,
                elapsed_ms=(time.perf_counter() - start_time) * 1000,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            completed = StageCompleted(
                turn_id=turn_id,
                stage=stage,
                error=e,
                elapsed_ms=(time.perf_counter() - start_time) * 1000,
            )
        self.submit(completed)

    def _launch_synthesis(self, turn: Turn) -> None:
        text = turn.reply_text or ""
        self._launch(
            turn,
            Stage.SYNTHESIZE,
            lambda: self._backends.synthesizer.synthesize(text, self._backends.voice),
            self._config.tts_timeout_s,
        )

    async def _on_stage_completed(self, event: StageCompleted) -> None:
        turn = self._turn
        if (
            turn is None
            or turn.turn_id != event.turn_id
            or self._state != _STAGE_STATES[event.stage]
        ):
            logger.debug(
                f"Session {self.id} ignoring stale {event.stage.value} result "
                f"for turn {event.turn_id}"
            )
            return

        self._stage_task = None
        self.metrics.add_latency(event.stage, event.elapsed_ms)

        if not event.ok:
            record_stage(event.stage.value, event.elapsed_ms, error_kind=_error_kind(event.error))
            self._fail_turn(turn, event.stage, event.error)
            return
        record_stage(event.stage.value, event.elapsed_ms)

        if event.stage == Stage.TRANSCRIBE:
            self._after_transcription(turn, event.result or "")
        elif event.stage == Stage.RESPOND:
            self._after_response(turn, event.result or "")
        else:
            await self._after_synthesis(turn, event.result or b"")

    def _after_transcription(self, turn: Turn, transcript: str) -> None:
        text = self._filter.clean(transcript)
        if text is None:
            logger.info(f"Session {self.id} turn {turn.turn_id} discarded as junk: {transcript!r}")
            self.metrics.turns_discarded += 1
            record_turn("junk" if transcript.strip() else "empty")
            self._turn = None
            self._transition(SessionState.LISTENING)
            return

        logger.info(f"Session {self.id} turn {turn.turn_id} user: {text}")
        turn.user_text = text
        messages = self.conversation.as_prompt_messages(pending_user_text=text)
        self._transition(SessionState.RESPONDING)
        self._launch(
            turn,
            Stage.RESPOND,
            lambda: self._backends.responder.respond(messages),
            self._config.llm_timeout_s,
        )

    def _after_response(self, turn: Turn, reply: str) -> None:
        reply = reply.strip()
        if not reply:
            self._fail_turn(turn, Stage.RESPOND, EmptyResponseError("Empty reply"))
            return

        logger.info(f"Session {self.id} turn {turn.turn_id} assistant: {reply}")
        turn.reply_text = reply
        self._transition(SessionState.SYNTHESIZING)
        self._launch_synthesis(turn)

    async def _after_synthesis(self, turn: Turn, audio: bytes) -> None:
        if not audio:
            self._fail_turn(turn, Stage.SYNTHESIZE, SynthesisError("Synthesizer returned no audio"))
            return

        # User and assistant utterances are committed together, only now
        if turn.user_text:
            self.conversation.append(Speaker.USER, turn.user_text)
        self.conversation.append(Speaker.ASSISTANT, turn.reply_text or "")

        self._transition(SessionState.SPEAKING)
        await self._play(turn, audio)

    def _fail_turn(self, turn: Turn, stage: Stage, error: BaseException) -> None:
        kind = _error_kind(error)
        message = str(error) or type(error).__name__
        if isinstance(error, RECOVERABLE_ERRORS):
            logger.warning(
                f"Session {self.id} turn {turn.turn_id} {stage.value} failed ({kind}): {message}"
            )
        else:
            logger.opt(exception=error).error(
                f"Session {self.id} turn {turn.turn_id} unexpected {stage.value} error: {message}"
            )

        self.errors.append(
            StageFailure(turn_id=turn.turn_id, stage=stage, kind=kind, message=message)
        )
        self.metrics.turns_discarded += 1
        record_turn(f"{stage.value}_failed")
        self._turn = None
        self._transition(SessionState.LISTENING)

    # ------------------------------------------------------------------
    # Speaking
    # ------------------------------------------------------------------

    async def _play(self, turn: Turn, audio: bytes) -> None:
        """Send the reply as frames, then arm the playback-finished signals."""
        stream_sid = self.stream_sid or ""
        sent = 0
        for frame in chunk_frames(audio, self._config.frame_size_bytes):
            await self._transport.send_media(stream_sid, frame)
            self.outbound_seq += 1
            sent += 1
        self.metrics.frames_sent += sent

        if self._config.use_playback_marks:
            turn.mark_name = f"turn-{turn.turn_id}"
            await self._transport.send_mark(stream_sid, turn.mark_name)

        delay_s = (
            mulaw_duration_ms(len(audio), self._config.sample_rate)
            + self._config.playback_grace_ms
        ) / 1000
        self._playback_task = asyncio.create_task(
            self._playback_timer(turn.turn_id, delay_s),
            name=f"playback-{self.id}-{turn.turn_id}",
        )
        logger.debug(
            f"Session {self.id} turn {turn.turn_id} queued {sent} frames "
            f"({delay_s:.2f}s until playback ends)"
        )

    async def _playback_timer(self, turn_id: int, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        self.submit(PlaybackFinished(turn_id=turn_id, source="timer"))

    def _finish_speaking(self, turn: Turn, *, source: str) -> None:
        if self._playback_task is not None and self._playback_task is not asyncio.current_task():
            self._playback_task.cancel()
        self._playback_task = None

        self.metrics.turns_completed += 1
        record_turn("greeting" if turn.is_greeting else "answered")
        logger.debug(f"Session {self.id} turn {turn.turn_id} playback finished ({source})")
        self._turn = None
        self._transition(SessionState.LISTENING)

    async def _interrupt(self, payload: bytes) -> None:
        """Caller spoke over the reply: flush playback and start a new turn."""
        turn = self._turn
        logger.info(
            f"Barge-in detected for session {self.id} "
            f"turn {turn.turn_id if turn else '?'}"
        )
        await self._transport.send_clear(self.stream_sid or "")

        if self._playback_task is not None:
            self._playback_task.cancel()
            self._playback_task = None

        self.metrics.barge_in_count += 1
        BARGE_IN_TOTAL.inc()
        record_turn("interrupted")
        self._turn = None
        self._transition(SessionState.LISTENING)
        self.turn_buffer.append(AudioFrame(payload=payload, received_at=self._clock()))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, new_state: SessionState) -> None:
        old_state = self._state
        if new_state not in ALLOWED_TRANSITIONS[old_state]:
            raise InvalidTransitionError(f"{old_state.name} → {new_state.name}")
        self._state = new_state
        self.transitions.append((old_state, new_state))
        logger.debug(f"Session {self.id} state: {old_state.name} → {new_state.name}")

    @staticmethod
    async def _cancel_task(task: asyncio.Task[None] | None) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def _error_kind(error: BaseException) -> str:
    if isinstance(error, TimeoutError):
        return "timeout"
    return type(error).__name__
