"""
Discussion session lifecycle and audio forwarding.

A session is created over REST, activated when the server acknowledges
``start_session`` and ended by the user or by the server:

    absent -> created -> active -> ended
                 ^          |
                 +----------+  (socket dropped or server rejected the id)

While a session is active, every captured buffer (stream mode) or every
fixed-duration WAV chunk (chunked mode) is forwarded with the session id and
an increasing chunk index. Transcription events are collected into the
session's TranscriptLog.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, List, Optional

import numpy as np

from ..audio.chunker import ChunkAccumulator
from ..audio.utils import LevelMeter, float32_to_bytes
from ..config import ConfigManager
from .models import SessionInfo, SessionState, TranscriptEntry, default_session_name
from .transcript import TranscriptLog, TranscriptSync
from .uploader import AUDIO_CHUNK_EVENT, AUDIO_DATA_EVENT, AudioPacket, ChunkUploader

logger = logging.getLogger(__name__)

AUDIO_MODES = ("stream", "chunked")
INVALID_SESSION_MARKER = "Invalid session ID"


class SessionManager:
    """Owns the current discussion session and its recording."""

    def __init__(
        self,
        api,
        channel,
        mode: str = "stream",
        sample_rate: int = 44100,
        frames_per_buffer: int = 4096,
        chunk_seconds: float = 3.0,
        level_history: int = 100,
        sync_interval: Optional[float] = None,
        audio_source_factory: Optional[Callable] = None,
        archive=None,
        alerts=None,
        uploader: Optional[ChunkUploader] = None,
    ):
        """
        Initialize the session manager.

        Args:
            api: APIClient for session creation, store access and HTTP upload
            channel: SocketChannel for session events and audio
            mode: "stream" for raw PCM buffers, "chunked" for WAV chunks
            sample_rate: Capture sample rate in Hz
            frames_per_buffer: Capture buffer size in frames
            chunk_seconds: Chunk duration in chunked mode
            level_history: Number of levels kept for visualization
            sync_interval: Durable-store poll interval, None to disable
            audio_source_factory: Called with the buffer callback, returns an
                object with start() and stop(); defaults to the microphone
            archive: SessionArchive for finished sessions
            alerts: SentimentAlertHandler kept scoped to the current session
            uploader: ChunkUploader, created from api and channel by default
        """
        if mode not in AUDIO_MODES:
            raise ValueError(f"Unknown audio mode '{mode}', expected one of {', '.join(AUDIO_MODES)}")

        self.api = api
        self.channel = channel
        self.mode = mode
        self.sample_rate = sample_rate
        self.frames_per_buffer = frames_per_buffer
        self.chunk_seconds = chunk_seconds
        self.sync_interval = sync_interval
        self.audio_source_factory = audio_source_factory or self._microphone_factory
        self.archive = archive
        self.alerts = alerts

        self.transcript = TranscriptLog()
        self.meter = LevelMeter(level_history)
        self.uploader = uploader or ChunkUploader(api, channel)
        self.last_error: Optional[str] = None

        self._state = SessionState.ABSENT
        self._session_id: Optional[str] = None
        self._session_name: Optional[str] = None
        self._user_id: Optional[str] = None
        self._created_at: Optional[datetime] = None
        self._started_at: Optional[datetime] = None
        self._ended_at: Optional[datetime] = None
        self._start_requested = False
        self._was_activated = False
        self._creating = False
        self._chunk_index = 0

        self._source = None
        self._chunker: Optional[ChunkAccumulator] = None
        self._sync: Optional[TranscriptSync] = None
        self._lock = threading.RLock()
        # serializes start_recording from the CLI and wake-word threads
        self._start_lock = threading.Lock()

        self._state_callbacks: List[Callable[[SessionState, SessionState], None]] = []
        self._transcript_callbacks: List[Callable[[TranscriptEntry], None]] = []

        channel.on("connect", self._on_connect)
        channel.on("disconnect", self._on_disconnect)
        channel.on("connect_error", self._on_connect_error)
        channel.on("connection_response", self._on_connection_response)
        channel.on("session_started", self._on_session_started)
        channel.on("session_ended", self._on_session_ended)
        channel.on("transcription", self._on_transcription)
        channel.on("transcript_update", self._on_transcript_update)
        channel.on("error", self._on_error)

    @classmethod
    def from_config(cls, api, channel, **overrides) -> "SessionManager":
        """Build a manager from ConfigManager values; keyword arguments win."""
        options = {
            "mode": ConfigManager.get("AUDIO_MODE"),
            "sample_rate": ConfigManager.get_int("AUDIO_SAMPLE_RATE"),
            "frames_per_buffer": ConfigManager.get_int("AUDIO_BUFFER_SIZE"),
            "chunk_seconds": ConfigManager.get_float("AUDIO_CHUNK_SECONDS"),
            "level_history": ConfigManager.get_int("LEVEL_HISTORY"),
            "sync_interval": ConfigManager.get_float("TRANSCRIPT_SYNC_INTERVAL"),
        }
        options.update({key: value for key, value in overrides.items() if value is not None})
        return cls(api, channel, **options)

    # ------------------------------------------------------------------
    # Accessors

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def session_id(self) -> Optional[str]:
        with self._lock:
            return self._session_id

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._source is not None

    @property
    def is_starting(self) -> bool:
        return self._start_lock.locked()

    @property
    def levels(self) -> List[float]:
        return self.meter.levels

    def info(self) -> SessionInfo:
        with self._lock:
            return SessionInfo(
                session_id=self._session_id,
                name=self._session_name,
                user_id=self._user_id,
                state=self._state,
                created_at=self._created_at,
                started_at=self._started_at,
                ended_at=self._ended_at,
                chunks_sent=self._chunk_index,
            )

    def on_state_change(self, callback: Callable[[SessionState, SessionState], None]) -> None:
        self._state_callbacks.append(callback)

    def on_transcript(self, callback: Callable[[TranscriptEntry], None]) -> None:
        self._transcript_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Session lifecycle

    def create_session(self, user_id: str = "anonymous", session_name: Optional[str] = None) -> str:
        """
        Create a session on the server and request its activation.

        Returns:
            The new session id

        Raises:
            RuntimeError: If a session is already in progress
            RequestException, ValueError: If the server call fails
        """
        with self._lock:
            if self._creating:
                raise RuntimeError("A session is already being created")
            if self._state in (SessionState.CREATED, SessionState.ACTIVE):
                raise RuntimeError(f"Session {self._session_id} is already in progress")
            self._creating = True

        session_name = session_name or default_session_name()
        try:
            session_id = self.api.create_session(user_id=user_id, session_name=session_name)
        except Exception as e:
            self.last_error = f"Failed to create session: {e}"
            raise
        finally:
            with self._lock:
                self._creating = False

        with self._lock:
            self._session_id = session_id
            self._session_name = session_name
            self._user_id = user_id
            self._created_at = datetime.now()
            self._started_at = None
            self._ended_at = None
            self._start_requested = False
            self._was_activated = False
            self._chunk_index = 0
            self.last_error = None
            self.transcript.reset(session_id)
            if self.alerts is not None:
                self.alerts.reset(session_id)
            self._set_state(SessionState.CREATED)

        if self.channel.connected:
            self._request_start()

        if self.sync_interval:
            self._sync = TranscriptSync(self.api, self.transcript, self.sync_interval)
            self._sync.start()

        return session_id

    def end_session(self) -> SessionInfo:
        """
        End the current session at the user's request.

        Raises:
            RuntimeError: If there is no session to end
        """
        with self._lock:
            if self._state not in (SessionState.CREATED, SessionState.ACTIVE):
                self.last_error = "No active session"
                raise RuntimeError("No active session")
            session_id = self._session_id

        logger.info(f"Ending session: {session_id}")
        return self._teardown(notify_server=True)

    def _teardown(self, notify_server: bool) -> SessionInfo:
        self.stop_recording()

        if self._sync:
            self._sync.stop()
            self._sync = None

        with self._lock:
            session_id = self._session_id
            self._ended_at = datetime.now()
            self._start_requested = False
            self._set_state(SessionState.ENDED)

        if notify_server:
            self.channel.emit("end_session", {"sessionId": session_id})

        info = self.info()
        if self.archive is not None:
            self._archive(info)
        return info

    def _archive(self, info: SessionInfo) -> None:
        try:
            self.archive.save_session(info)
            self.archive.save_transcript(info.session_id, self.transcript.entries)
            if self.alerts is not None:
                self.archive.save_alerts(info.session_id, [record.to_dict() for record in self.alerts.history])
        except (OSError, ValueError) as e:
            logger.error(f"Failed to archive session {info.session_id}: {e}")

    def _request_start(self) -> None:
        with self._lock:
            if self._state != SessionState.CREATED or self._start_requested:
                return
            self._start_requested = True
            session_id = self._session_id

        logger.info(f"Starting session with ID: {session_id}")
        if not self.channel.emit("start_session", {"sessionId": session_id}):
            with self._lock:
                self._start_requested = False

    def _set_state(self, new_state: SessionState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info(f"Session {self._session_id}: {old_state.value} -> {new_state.value}")
        for callback in list(self._state_callbacks):
            try:
                callback(old_state, new_state)
            except Exception:
                logger.exception("State change callback failed")

    # ------------------------------------------------------------------
    # Recording

    def start_recording(self, user_id: str = "anonymous", session_name: Optional[str] = None) -> None:
        """
        Start capturing audio, creating a session first if there is none.

        A session that is created but not acknowledged (for example after the
        server rejected its id) is asked to start again.

        Raises:
            RuntimeError: If the socket is not connected
        """
        with self._start_lock:
            if self.is_recording:
                logger.warning("Already recording")
                return

            if not self.channel.connected:
                self.last_error = "Not connected to server. Please try again."
                raise RuntimeError(self.last_error)

            state = self.state
            if state in (SessionState.ABSENT, SessionState.ENDED):
                self.create_session(user_id=user_id, session_name=session_name)
            elif state == SessionState.CREATED:
                self._request_start()

            self._start_source()

    def _start_source(self) -> None:
        chunker = None
        if self.mode == "chunked":
            chunker = ChunkAccumulator(self.chunk_seconds, self.sample_rate, self._forward_chunk)

        with self._lock:
            self._chunker = chunker
        self.uploader.start()

        source = self.audio_source_factory(self._on_buffer)
        # registered before start so a teardown racing the start stops it
        with self._lock:
            self._source = source
        try:
            source.start()
        except Exception as e:
            self.last_error = f"Error setting up audio: {e}"
            with self._lock:
                self._source = None
                self._chunker = None
            raise

        logger.info(f"Recording started for session {self.session_id} ({self.mode} mode)")

    def stop_recording(self) -> None:
        """Stop capturing audio; the last partial chunk is sent in chunked mode."""
        with self._lock:
            source = self._source
            chunker = self._chunker
            self._source = None

        if source is None:
            return

        source.stop()
        if chunker is not None:
            chunker.flush()
        with self._lock:
            self._chunker = None

        self.uploader.flush()
        self.meter.reset()
        logger.info("Recording stopped")

    def _microphone_factory(self, on_buffer: Callable[[np.ndarray], None]):
        from ..audio.capture import MicrophoneStream

        return MicrophoneStream(on_buffer, sample_rate=self.sample_rate, frames_per_buffer=self.frames_per_buffer)

    def _on_buffer(self, samples: np.ndarray) -> None:
        self.meter.push(samples)

        if self.mode == "chunked":
            with self._lock:
                chunker = self._chunker
            if chunker is not None:
                chunker.add(samples)
            return

        with self._lock:
            if self._state != SessionState.ACTIVE or not self.channel.connected:
                return
            packet = AudioPacket(self._session_id, self._chunk_index, AUDIO_DATA_EVENT, float32_to_bytes(samples))
            self._chunk_index += 1
        self.uploader.enqueue(packet)

    def _forward_chunk(self, wav_bytes: bytes) -> None:
        with self._lock:
            connected = self.channel.connected
            live = self._state == SessionState.ACTIVE and connected
            # socket dropped mid-session: the uploader falls back to HTTP
            offline = self._state == SessionState.CREATED and self._was_activated and not connected
            if not (live or offline):
                logger.debug("Dropping audio chunk, session is not active")
                return
            packet = AudioPacket(self._session_id, self._chunk_index, AUDIO_CHUNK_EVENT, wav_bytes)
            self._chunk_index += 1
        self.uploader.enqueue(packet)

    # ------------------------------------------------------------------
    # Socket events

    def _on_connect(self) -> None:
        logger.info("Socket connected successfully")
        self.last_error = None
        self._request_start()

    def _on_disconnect(self, *args) -> None:
        logger.info("Socket disconnected")
        with self._lock:
            self._start_requested = False
            if self._state == SessionState.ACTIVE:
                self._set_state(SessionState.CREATED)

    def _on_connect_error(self, data: Any = None) -> None:
        self.last_error = f"Connection error: {data}"
        logger.warning(self.last_error)

    def _on_connection_response(self, data: Any = None) -> None:
        logger.info(f"Connection response: {data}")

    def _on_session_started(self, payload: Any = None) -> None:
        session_id = payload.get("sessionId") if isinstance(payload, dict) else None
        if not isinstance(session_id, str):
            logger.warning(f"Invalid session_started data format: {payload!r}")
            return

        with self._lock:
            if session_id != self._session_id or self._state not in (SessionState.CREATED, SessionState.ACTIVE):
                logger.debug(f"Ignoring session_started for {session_id}")
                return
            if self._started_at is None:
                self._started_at = datetime.now()
            self._was_activated = True
            self.last_error = None
            self._set_state(SessionState.ACTIVE)
        logger.info(f"Session started successfully: {session_id}")

    def _on_session_ended(self, payload: Any = None) -> None:
        session_id = payload.get("sessionId") if isinstance(payload, dict) else None
        with self._lock:
            if session_id != self._session_id or self._state not in (SessionState.CREATED, SessionState.ACTIVE):
                return
        logger.info(f"Session ended by server: {session_id}")
        self._teardown(notify_server=False)

    def _on_transcription(self, payload: Any = None) -> None:
        entry = self.transcript.handle_event(payload)
        if entry is None:
            return
        for callback in list(self._transcript_callbacks):
            try:
                callback(entry)
            except Exception:
                logger.exception("Transcript callback failed")

    def _on_transcript_update(self, payload: Any = None) -> None:
        text = payload.get("text") if isinstance(payload, dict) else None
        if isinstance(text, str):
            self.transcript.set_latest(text)

    def _on_error(self, payload: Any = None) -> None:
        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, str):
            logger.warning(f"Invalid error format: {payload!r}")
            return

        logger.error(f"Received error: {message}")
        with self._lock:
            self.last_error = message
            if INVALID_SESSION_MARKER in message:
                self._start_requested = False
                if self._state == SessionState.ACTIVE:
                    self._set_state(SessionState.CREATED)

    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop recording, background sync and the uploader."""
        self.stop_recording()
        if self._sync:
            self._sync.stop()
            self._sync = None
        self.uploader.stop()
