from __future__ import annotations

import logging

import anyio
from google import genai
from google.genai import types

from interview_mentor.audio.pcm import encode_base64
from interview_mentor.config import Settings
from interview_mentor.errors import GenerationError


logger = logging.getLogger(__name__)

TTS_PROMPT = "Speak as a professional tech mentor in a podcast style. Be clear and engaging: {text}"


class SpeechService:
	"""Text-to-speech through the Gemini TTS model.

	Produces base64 mono 16-bit PCM at ``tts_sample_rate``.
	"""

	def __init__(self, settings: Settings) -> None:
		self._settings = settings
		self._client: genai.Client | None = None

	@property
	def enabled(self) -> bool:
		return bool(self._settings.gemini_api_key)

	@property
	def sample_rate(self) -> int:
		return self._settings.tts_sample_rate

	def _ensure_client(self) -> genai.Client | None:
		if not self._settings.gemini_api_key:
			return None
		if self._client is None:
			self._client = genai.Client(api_key=self._settings.gemini_api_key)
		return self._client

	async def generate_tts(self, text: str) -> str:
		client = self._ensure_client()
		if client is None:
			raise GenerationError("Speech synthesis is not configured")

		config = types.GenerateContentConfig(
			response_modalities=["AUDIO"],
			speech_config=types.SpeechConfig(
				voice_config=types.VoiceConfig(
					prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self._settings.tts_voice),
				),
			),
		)

		def _call():
			return client.models.generate_content(
				model=self._settings.tts_model,
				contents=TTS_PROMPT.format(text=text),
				config=config,
			)

		try:
			resp = await anyio.to_thread.run_sync(_call)
		except Exception as exc:
			logger.warning("TTS request failed: %s", exc)
			raise GenerationError(str(exc)) from exc

		data = None
		candidates = getattr(resp, "candidates", None) or []
		if candidates and candidates[0].content and candidates[0].content.parts:
			inline = candidates[0].content.parts[0].inline_data
			data = inline.data if inline is not None else None
		if not data:
			raise GenerationError("TTS Generation failed")
		if isinstance(data, str):
			return data
		return encode_base64(data)
