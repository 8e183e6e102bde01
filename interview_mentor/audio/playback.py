from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Set, Union
import logging
import threading

from interview_mentor.audio.pcm import decode_frame, duration_seconds


logger = logging.getLogger(__name__)


class PlaybackHandle(Protocol):
	def stop(self) -> None: ...


class AudioOutput(Protocol):
	"""An output timeline: a clock plus the ability to start audio at a given time."""

	@property
	def current_time(self) -> float: ...

	def start(self, pcm: bytes, at: float, duration: float, on_ended: Callable[[], None]) -> PlaybackHandle: ...

	def close(self) -> None: ...


@dataclass(eq=False)
class ScheduledUnit:
	start: float
	duration: float
	handle: Optional[PlaybackHandle] = None

	@property
	def end(self) -> float:
		return self.start + self.duration


class PlaybackBuffer:
	"""Gapless scheduler for PCM16 frames arriving at arbitrary intervals.

	Each frame starts at ``max(cursor, now)``: right after the previous frame
	while audio is still queued, immediately after an underrun. ``interrupt``
	drops everything and resets the cursor so the next frame starts fresh.
	"""

	def __init__(self, output: AudioOutput, sample_rate: int = 24000) -> None:
		self._output = output
		self._sample_rate = sample_rate
		self._cursor: Optional[float] = None
		self._live: Set[ScheduledUnit] = set()
		# Device callbacks may run on other threads; on_ended can fire inside stop()
		self._lock = threading.RLock()
		self._closed = False

	@property
	def cursor(self) -> Optional[float]:
		return self._cursor

	@property
	def live_count(self) -> int:
		with self._lock:
			return len(self._live)

	@property
	def is_playing(self) -> bool:
		return self.live_count > 0

	@property
	def closed(self) -> bool:
		return self._closed

	def enqueue(self, frame: Union[bytes, str]) -> Optional[ScheduledUnit]:
		pcm = decode_frame(frame)
		if not pcm:
			return None
		duration = duration_seconds(pcm, self._sample_rate)
		with self._lock:
			if self._closed:
				return None
			now = self._output.current_time
			previous = self._cursor
			start = now if previous is None else max(previous, now)
			self._cursor = start + duration
			unit = ScheduledUnit(start=start, duration=duration)
			self._live.add(unit)
			try:
				unit.handle = self._output.start(pcm, start, duration, lambda: self._finished(unit))
			except Exception:
				self._live.discard(unit)
				self._cursor = previous
				raise
			return unit

	def _finished(self, unit: ScheduledUnit) -> None:
		with self._lock:
			self._live.discard(unit)

	def interrupt(self) -> None:
		with self._lock:
			units: List[ScheduledUnit] = list(self._live)
			self._live.clear()
			self._cursor = None
		for unit in units:
			if unit.handle is None:
				continue
			try:
				unit.handle.stop()
			except Exception as exc:
				logger.debug("Ignoring stop failure: %s", exc)

	def close(self) -> None:
		self.interrupt()
		with self._lock:
			if self._closed:
				return
			self._closed = True
		try:
			self._output.close()
		except Exception as exc:
			logger.debug("Ignoring output close failure: %s", exc)
