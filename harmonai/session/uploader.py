"""
Queue-based audio forwarding.

Capture callbacks must never block on the network, so forwarded audio is
put on a bounded queue and sent from a worker thread in order. Raw PCM
buffers only travel over the socket; WAV chunks go over the socket when it
is connected and over HTTP otherwise.
"""

import base64
import logging
import threading
from dataclasses import dataclass
from queue import Empty, Full, Queue
from typing import Any, Dict, Optional

from requests.exceptions import RequestException

logger = logging.getLogger(__name__)

AUDIO_DATA_EVENT = "audio_data"
AUDIO_CHUNK_EVENT = "audio_chunk"


@dataclass(frozen=True)
class AudioPacket:
    """One unit of forwarded audio."""

    session_id: str
    chunk_index: int
    event: str
    audio: bytes


class ChunkUploader:
    """Sends queued audio packets to the backend from a worker thread."""

    def __init__(self, api, channel, max_queue_size: int = 256, queue_check_interval: float = 0.5):
        """
        Initialize the uploader.

        Args:
            api: APIClient used for the HTTP fallback
            channel: SocketChannel used for real-time forwarding
            max_queue_size: Packets kept before new ones are dropped
            queue_check_interval: How often the worker checks for stop (seconds)
        """
        self.api = api
        self.channel = channel
        self.queue_check_interval = queue_check_interval

        self.packet_queue: Queue = Queue(maxsize=max_queue_size)
        self.is_running = False
        self.worker_thread: Optional[threading.Thread] = None

        self.sent = 0
        self.sent_http = 0
        self.failed = 0
        self.dropped = 0
        self._lock = threading.Lock()

    def start(self) -> None:
        if self.is_running:
            return

        self.is_running = True
        self.worker_thread = threading.Thread(target=self._worker, daemon=True)
        self.worker_thread.start()
        logger.info("Audio uploader started")

    def stop(self, drain: bool = True, timeout: float = 5.0) -> None:
        """
        Stop the worker.

        Args:
            drain: Send queued packets before stopping
            timeout: Maximum time to wait for the worker (seconds)
        """
        if not self.is_running:
            return

        if drain:
            self.flush(timeout)

        self.is_running = False
        if self.worker_thread:
            self.worker_thread.join(timeout=timeout)
            self.worker_thread = None
        logger.info("Audio uploader stopped")

    def flush(self, timeout: float = 5.0) -> bool:
        """
        Wait until every queued packet has been handled.

        Returns:
            True if the queue drained within the timeout
        """
        done = threading.Event()

        def waiter():
            self.packet_queue.join()
            done.set()

        threading.Thread(target=waiter, daemon=True).start()
        return done.wait(timeout)

    def enqueue(self, packet: AudioPacket) -> bool:
        """
        Queue a packet for sending.

        Returns:
            True if queued, False if the queue was full and the packet dropped
        """
        try:
            self.packet_queue.put_nowait(packet)
        except Full:
            with self._lock:
                self.dropped += 1
            logger.warning(f"Audio queue full, dropping chunk {packet.chunk_index}")
            return False
        return True

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "is_running": self.is_running,
                "queue_size": self.packet_queue.qsize(),
                "sent": self.sent,
                "sent_http": self.sent_http,
                "failed": self.failed,
                "dropped": self.dropped,
            }

    def _worker(self) -> None:
        while self.is_running:
            try:
                packet = self.packet_queue.get(timeout=self.queue_check_interval)
            except Empty:
                continue

            try:
                self._send(packet)
            except Exception as e:
                with self._lock:
                    self.failed += 1
                logger.error(f"Error sending chunk {packet.chunk_index}: {e}")
            finally:
                self.packet_queue.task_done()

    def _send(self, packet: AudioPacket) -> None:
        if packet.event == AUDIO_DATA_EVENT:
            payload = {"sessionId": packet.session_id, "audio": packet.audio, "chunkIndex": packet.chunk_index}
            self._record(self.channel.emit(AUDIO_DATA_EVENT, payload), http=False)
            return

        if self.channel.connected:
            payload = {
                "sessionId": packet.session_id,
                "audio": base64.b64encode(packet.audio).decode("ascii"),
                "chunkIndex": packet.chunk_index,
            }
            if self.channel.emit(AUDIO_CHUNK_EVENT, payload):
                self._record(True, http=False)
                logger.debug(f"Sent audio chunk {packet.chunk_index} via Socket.IO: {len(packet.audio)} bytes")
                return

        try:
            self.api.upload_audio(packet.session_id, packet.audio, packet.chunk_index)
        except RequestException as e:
            logger.error(f"Error sending audio via HTTP: {e}")
            self._record(False, http=True)
            return

        logger.debug(f"Sent audio chunk {packet.chunk_index} via HTTP: {len(packet.audio)} bytes")
        self._record(True, http=True)

    def _record(self, ok: bool, http: bool) -> None:
        with self._lock:
            if not ok:
                self.failed += 1
                return
            self.sent += 1
            if http:
                self.sent_http += 1
