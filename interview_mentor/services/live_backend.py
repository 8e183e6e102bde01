from __future__ import annotations

from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Callable, Optional, Protocol
import asyncio
import logging

from google import genai
from google.genai import types


logger = logging.getLogger(__name__)


@dataclass
class LiveConfig:
	model: str
	system_instruction: str
	voice_name: str
	input_sample_rate: int = 16000


@dataclass
class LiveMessage:
	audio: Optional[bytes] = None
	interrupted: bool = False
	turn_complete: bool = False


@dataclass
class LiveCallbacks:
	on_open: Callable[[], None]
	on_message: Callable[[LiveMessage], None]
	on_error: Callable[[BaseException], None]
	on_close: Callable[[], None]


class LiveSessionHandle(Protocol):
	async def send_realtime_input(self, frame: bytes) -> None: ...

	async def close(self) -> None: ...


class LiveBackend(Protocol):
	async def connect(self, config: LiveConfig, callbacks: LiveCallbacks) -> LiveSessionHandle: ...


def to_live_message(message: types.LiveServerMessage) -> LiveMessage:
	content = message.server_content
	if content is None:
		return LiveMessage()
	audio: Optional[bytes] = None
	if content.model_turn and content.model_turn.parts:
		for part in content.model_turn.parts:
			if part.inline_data is not None and part.inline_data.data:
				audio = part.inline_data.data
				break
	return LiveMessage(
		audio=audio,
		interrupted=bool(content.interrupted),
		turn_complete=bool(content.turn_complete),
	)


class GeminiLiveHandle:
	def __init__(self, session, stack: AsyncExitStack, input_sample_rate: int) -> None:
		self._session = session
		self._stack = stack
		self._mime_type = f"audio/pcm;rate={input_sample_rate}"
		self._receiver: Optional[asyncio.Task] = None
		self._closing = False

	@property
	def closing(self) -> bool:
		return self._closing

	async def send_realtime_input(self, frame: bytes) -> None:
		# The SDK base64-encodes Blob data on the wire
		await self._session.send_realtime_input(audio=types.Blob(data=frame, mime_type=self._mime_type))

	async def close(self) -> None:
		if self._closing:
			return
		self._closing = True
		if self._receiver is not None and self._receiver is not asyncio.current_task():
			self._receiver.cancel()
		await self._stack.aclose()


class GeminiLiveBackend:
	"""Adapts the google-genai live API to open/message/error/close callbacks."""

	def __init__(self, api_key: str, client: Optional[genai.Client] = None) -> None:
		self._client = client or genai.Client(api_key=api_key)

	def _connect_config(self, config: LiveConfig) -> types.LiveConnectConfig:
		return types.LiveConnectConfig(
			response_modalities=[types.Modality.AUDIO],
			system_instruction=config.system_instruction,
			speech_config=types.SpeechConfig(
				voice_config=types.VoiceConfig(
					prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=config.voice_name),
				),
			),
		)

	async def connect(self, config: LiveConfig, callbacks: LiveCallbacks) -> GeminiLiveHandle:
		stack = AsyncExitStack()
		session = await stack.enter_async_context(
			self._client.aio.live.connect(model=config.model, config=self._connect_config(config))
		)
		handle = GeminiLiveHandle(session, stack, config.input_sample_rate)
		callbacks.on_open()
		handle._receiver = asyncio.create_task(self._receive(session, handle, callbacks))
		return handle

	async def _receive(self, session, handle: GeminiLiveHandle, callbacks: LiveCallbacks) -> None:
		try:
			while not handle.closing:
				# receive() ends after each completed model turn; an empty turn means the socket closed
				received = False
				async for message in session.receive():
					received = True
					callbacks.on_message(to_live_message(message))
				if not received:
					break
		except asyncio.CancelledError:
			raise
		except Exception as exc:
			if not handle.closing:
				callbacks.on_error(exc)
			return
		if not handle.closing:
			logger.info("Live session ended by the server")
			callbacks.on_close()
