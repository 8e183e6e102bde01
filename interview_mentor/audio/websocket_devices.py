"""Audio devices bridged to a browser over the mentor WebSocket.

The browser owns the real microphone and speakers. The server sees the
microphone as a stream of float32 frames and drives the browser's output
timeline by sending scheduled PCM chunks.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple
import asyncio
import itertools
import time

import numpy as np

from interview_mentor.audio.pcm import encode_base64, float32_bytes_to_array
from interview_mentor.errors import MediaError


FrameCallback = Callable[[np.ndarray], None]


@dataclass(eq=False)
class _RemoteUnit:
	speaker: "WebSocketSpeaker"
	unit_id: int
	timer: asyncio.TimerHandle

	def stop(self) -> None:
		self.speaker._stop(self)


class WebSocketSpeaker:
	"""AudioOutput whose clock is seconds since the session began.

	``send`` must not block; it is normally ``asyncio.Queue.put_nowait`` of
	the connection's outbound queue.
	"""

	def __init__(self, send: Callable[[dict], None], sample_rate: int = 24000, clock: Callable[[], float] = time.monotonic) -> None:
		self._send = send
		self._sample_rate = sample_rate
		self._clock = clock
		self._origin = clock()
		self._ids = itertools.count(1)
		self._closed = False

	@property
	def current_time(self) -> float:
		return self._clock() - self._origin

	def start(self, pcm: bytes, at: float, duration: float, on_ended: Callable[[], None]) -> _RemoteUnit:
		unit_id = next(self._ids)
		if not self._closed:
			self._send({
				"type": "audio",
				"id": unit_id,
				"data": encode_base64(pcm),
				"start_at": at,
				"duration": duration,
				"sample_rate": self._sample_rate,
			})
		delay = max(0.0, at + duration - self.current_time)
		timer = asyncio.get_running_loop().call_later(delay, on_ended)
		return _RemoteUnit(self, unit_id, timer)

	def _stop(self, unit: _RemoteUnit) -> None:
		unit.timer.cancel()
		if not self._closed:
			self._send({"type": "stop", "id": unit.unit_id})

	def close(self) -> None:
		self._closed = True


class WebSocketMicrophone:
	"""Microphone whose permission and samples come from the browser.

	``open`` waits for the browser to report the permission outcome. Frames
	fed before ``attach`` are dropped; afterwards they are re-chunked into
	``frame_size`` samples so capture keeps a fixed cadence.
	"""

	def __init__(self, frame_size: int = 4096, timeout: Optional[float] = 30.0) -> None:
		self._frame_size = frame_size
		self._timeout = timeout
		self._decision: Optional[asyncio.Future] = None
		self._buffer = np.zeros(0, dtype=np.float32)
		self._on_frame: Optional[FrameCallback] = None
		self._closed = False

	def _future(self) -> asyncio.Future:
		if self._decision is None:
			self._decision = asyncio.get_running_loop().create_future()
		return self._decision

	def _resolve(self, outcome: Tuple[bool, Optional[str]]) -> None:
		decision = self._future()
		if not decision.done():
			decision.set_result(outcome)

	def grant(self) -> None:
		self._resolve((True, None))

	def deny(self, reason: Optional[str] = None) -> None:
		self._resolve((False, reason or "Microphone access denied"))

	async def open(self) -> None:
		if self._closed:
			raise MediaError("Microphone already closed", code="closed")
		try:
			granted, reason = await asyncio.wait_for(self._future(), self._timeout)
		except asyncio.TimeoutError as exc:
			raise MediaError("Microphone permission was not granted in time", code="timeout") from exc
		if not granted:
			raise MediaError(reason or "Microphone access denied", code="permission-denied")

	def attach(self, on_frame: FrameCallback) -> None:
		self._on_frame = on_frame

	def feed(self, data: bytes) -> int:
		"""Push captured float32 bytes; returns the number of frames emitted."""
		if self._closed or self._on_frame is None:
			return 0
		self._buffer = np.concatenate([self._buffer, float32_bytes_to_array(data)])
		emitted = 0
		while self._buffer.size >= self._frame_size and self._on_frame is not None:
			frame, self._buffer = self._buffer[: self._frame_size], self._buffer[self._frame_size:]
			self._on_frame(frame)
			emitted += 1
		return emitted

	def close(self) -> None:
		self._closed = True
		self._on_frame = None
		self._buffer = np.zeros(0, dtype=np.float32)
		if self._decision is not None and not self._decision.done():
			self._decision.set_result((False, "Microphone closed"))
