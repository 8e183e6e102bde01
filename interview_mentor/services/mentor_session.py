from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Set, Union
import asyncio
import logging

import numpy as np

from interview_mentor.audio.pcm import float_to_pcm16
from interview_mentor.audio.playback import AudioOutput, PlaybackBuffer
from interview_mentor.errors import MediaError
from interview_mentor.services.live_backend import (
	LiveBackend,
	LiveCallbacks,
	LiveConfig,
	LiveMessage,
	LiveSessionHandle,
)


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
	IDLE = "idle"
	CONNECTING = "connecting"
	ACTIVE = "active"
	CLOSED = "closed"
	ERRORED = "errored"


TERMINAL_STATES = {SessionState.CLOSED, SessionState.ERRORED}

TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
	SessionState.IDLE: {SessionState.CONNECTING, SessionState.CLOSED},
	SessionState.CONNECTING: {SessionState.ACTIVE, SessionState.ERRORED, SessionState.CLOSED},
	SessionState.ACTIVE: {SessionState.CLOSED, SessionState.ERRORED},
	SessionState.CLOSED: set(),
	SessionState.ERRORED: set(),
}


class Microphone(Protocol):
	async def open(self) -> None: ...

	def attach(self, on_frame: Callable[[np.ndarray], None]) -> None: ...

	def close(self) -> None: ...


# Events placed on the session's channel by collaborator callbacks

@dataclass
class _Opened:
	pass


@dataclass
class _Inbound:
	message: LiveMessage


@dataclass
class _Failed:
	error: BaseException


@dataclass
class _RemoteClosed:
	pass


@dataclass
class _CloseRequested:
	pass


_Event = Union[_Opened, _Inbound, _Failed, _RemoteClosed, _CloseRequested]


class MentorSession:
	"""Lifecycle of one live voice mentor conversation.

	Idle -> Connecting -> Active -> Closed | Errored. Backend callbacks only
	enqueue events; ``_run`` is the single consumer that applies them.
	Teardown happens exactly once whichever path reaches it first.
	"""

	def __init__(
		self,
		backend: LiveBackend,
		microphone: Microphone,
		speaker: AudioOutput,
		config: LiveConfig,
		*,
		output_sample_rate: int = 24000,
		connect_timeout: Optional[float] = 15.0,
		on_close: Optional[Callable[[SessionState], None]] = None,
		on_interrupted: Optional[Callable[[], None]] = None,
	) -> None:
		self._backend = backend
		self._microphone = microphone
		self._config = config
		self._connect_timeout = connect_timeout
		self._on_close = on_close
		self._on_interrupted = on_interrupted
		self.playback = PlaybackBuffer(speaker, output_sample_rate)
		self.state = SessionState.IDLE
		self.error: Optional[BaseException] = None
		self.frames_sent = 0
		self._events: asyncio.Queue = asyncio.Queue()
		self._outbound: asyncio.Queue = asyncio.Queue()
		self._handle: Optional[LiveSessionHandle] = None
		self._consumer: Optional[asyncio.Task] = None
		self._sender: Optional[asyncio.Task] = None
		self._listeners: List[Callable[[SessionState], None]] = []
		self._torn_down = False
		self._tearing_task: Optional[asyncio.Task] = None
		self._done = asyncio.Event()

	@property
	def terminal(self) -> bool:
		return self.state in TERMINAL_STATES

	def add_listener(self, listener: Callable[[SessionState], None]) -> None:
		self._listeners.append(listener)

	def _transition(self, new_state: SessionState) -> None:
		if new_state not in TRANSITIONS[self.state]:
			raise RuntimeError(f"Invalid mentor session transition {self.state.value} -> {new_state.value}")
		logger.info("Mentor session %s -> %s", self.state.value, new_state.value)
		self.state = new_state
		for listener in list(self._listeners):
			try:
				listener(new_state)
			except Exception:
				logger.exception("Mentor session listener failed")

	def _callbacks(self) -> LiveCallbacks:
		return LiveCallbacks(
			on_open=lambda: self._events.put_nowait(_Opened()),
			on_message=lambda message: self._events.put_nowait(_Inbound(message)),
			on_error=lambda error: self._events.put_nowait(_Failed(error)),
			on_close=lambda: self._events.put_nowait(_RemoteClosed()),
		)

	async def start(self) -> None:
		if self.state is not SessionState.IDLE:
			raise RuntimeError("Mentor session already started")
		self._transition(SessionState.CONNECTING)

		try:
			await self._microphone.open()
		except MediaError as exc:
			await self._teardown(SessionState.ERRORED, exc)
			return
		except Exception as exc:
			await self._teardown(SessionState.ERRORED, MediaError(str(exc)))
			return
		if self.terminal:
			return

		try:
			handle = await asyncio.wait_for(
				self._backend.connect(self._config, self._callbacks()),
				self._connect_timeout,
			)
		except asyncio.TimeoutError as exc:
			await self._teardown(SessionState.ERRORED, exc)
			return
		except Exception as exc:
			await self._teardown(SessionState.ERRORED, exc)
			return

		if self.terminal:
			# Closed while the connection was being established
			await _close_quietly(handle)
			return
		self._handle = handle
		self._consumer = asyncio.create_task(self._run())

	async def _run(self) -> None:
		while True:
			event: _Event = await self._events.get()
			if isinstance(event, _Opened):
				if self.state is SessionState.CONNECTING:
					self._activate()
			elif isinstance(event, _Inbound):
				if self.state is SessionState.ACTIVE:
					self._handle_message(event.message)
			elif isinstance(event, _Failed):
				await self._teardown(SessionState.ERRORED, event.error)
				return
			else:
				await self._teardown(SessionState.CLOSED)
				return

	def _activate(self) -> None:
		self._transition(SessionState.ACTIVE)
		self._microphone.attach(self._on_capture)
		self._sender = asyncio.create_task(self._send_loop())

	def _on_capture(self, frame: np.ndarray) -> None:
		# Runs on the capture cadence; never waits on the network
		if self.state is not SessionState.ACTIVE:
			return
		self._outbound.put_nowait(float_to_pcm16(frame))

	async def _send_loop(self) -> None:
		while True:
			pcm = await self._outbound.get()
			try:
				await self._handle.send_realtime_input(pcm)
				self.frames_sent += 1
			except asyncio.CancelledError:
				raise
			except Exception as exc:
				self._events.put_nowait(_Failed(exc))
				return

	def _handle_message(self, message: LiveMessage) -> None:
		if message.audio:
			try:
				self.playback.enqueue(message.audio)
			except Exception as exc:
				logger.warning("Dropping undecodable mentor audio: %s", exc)
		if message.interrupted:
			self.playback.interrupt()
			if self._on_interrupted is not None:
				self._on_interrupted()

	async def close(self) -> None:
		if self._torn_down:
			if self._tearing_task is not asyncio.current_task():
				await self._done.wait()
			return
		if self._consumer is not None and not self._consumer.done():
			self._events.put_nowait(_CloseRequested())
			await self._done.wait()
		else:
			await self._teardown(SessionState.CLOSED)

	async def wait_closed(self) -> SessionState:
		await self._done.wait()
		return self.state

	async def _teardown(self, final_state: SessionState, error: Optional[BaseException] = None) -> None:
		if self._torn_down:
			return
		self._torn_down = True
		self._tearing_task = asyncio.current_task()
		self.error = error
		if error is not None:
			logger.warning("Mentor session failed: %r", error)

		self.playback.interrupt()
		if self._sender is not None:
			self._sender.cancel()
		if self._handle is not None:
			await _close_quietly(self._handle)
		try:
			self._microphone.close()
		except Exception as exc:
			logger.debug("Ignoring microphone close failure: %s", exc)
		self.playback.close()

		self._transition(final_state)
		self._done.set()
		if self._on_close is not None:
			try:
				self._on_close(final_state)
			except Exception:
				logger.exception("Mentor session close callback failed")
		if self._consumer is not None and self._consumer is not asyncio.current_task():
			self._consumer.cancel()


async def _close_quietly(handle: LiveSessionHandle) -> None:
	try:
		await handle.close()
	except Exception as exc:
		logger.debug("Ignoring live session close failure: %s", exc)
