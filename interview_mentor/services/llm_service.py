from __future__ import annotations

from typing import Dict, List, Optional
import logging
import re

import anyio
from groq import Groq
from google import genai
from google.genai import types

from interview_mentor.config import Settings
from interview_mentor.errors import GenerationError


logger = logging.getLogger(__name__)


EXPERT_ANSWER_PROMPT = (
	"Acting as a Senior Angular Architect with 9+ years of deep experience, provide a detailed technical "
	"explanation for the following interview question: \"{question}\".\n"
	"The explanation should include architecture insights, code examples where relevant, and industry best "
	"practices that would impress an interviewer. Keep it structured and professional."
)

EMPTY_ANSWER = "Could not generate an answer at this time."


class LLMService:
	def __init__(self, settings: Settings) -> None:
		self._settings = settings
		self._client: Groq | genai.Client | None = None

	@property
	def provider(self) -> str:
		return (self._settings.llm_provider or "gemini").lower()

	def _ensure_client(self):
		provider = self.provider
		if provider == "groq":
			api_key = self._settings.groq_api_key
			if not api_key:
				self._client = None
				return None
			if self._client is None or not isinstance(self._client, Groq):
				self._client = Groq(api_key=api_key)
			return self._client
		elif provider == "gemini":
			api_key = self._settings.gemini_api_key
			if not api_key:
				self._client = None
				return None
			if self._client is None or not isinstance(self._client, genai.Client):
				self._client = genai.Client(api_key=api_key)
			return self._client
		else:
			return None

	@property
	def enabled(self) -> bool:
		provider = self.provider
		if provider == "groq":
			return bool(self._settings.groq_api_key)
		if provider == "gemini":
			return bool(self._settings.gemini_api_key)
		return False

	def _format_response(self, text: str) -> str:
		"""Trim the model output and collapse runs of blank lines."""
		text = text.replace("\r\n", "\n").strip()
		return re.sub(r"\n{3,}", "\n\n", text)

	async def generate_expert_answer(self, question_text: str) -> str:
		"""Return an expert answer for ``question_text``.

		Raises GenerationError when no provider is configured or the call fails.
		"""
		client = self._ensure_client()
		if client is None:
			raise GenerationError(f"LLM provider '{self.provider}' is not configured")

		provider = self.provider
		prompt = EXPERT_ANSWER_PROMPT.format(question=question_text.strip())

		def _call() -> str:
			if provider == "groq":
				messages: List[Dict[str, str]] = [{"role": "user", "content": prompt}]
				resp = client.chat.completions.create(
					model=self._settings.groq_model,
					messages=messages,
					temperature=self._settings.answer_temperature,
					max_tokens=self._settings.groq_max_tokens,
				)
				return resp.choices[0].message.content or ""
			config: Optional[types.GenerateContentConfig] = None
			if self._settings.gemini_use_search:
				# Retrieval augmentation through Google Search grounding
				config = types.GenerateContentConfig(tools=[types.Tool(google_search=types.GoogleSearch())])
			resp = client.models.generate_content(model=self._settings.gemini_model, contents=prompt, config=config)
			return resp.text or ""

		try:
			raw_text = await anyio.to_thread.run_sync(_call)
		except Exception as exc:
			logger.warning("Expert answer generation failed (%s): %s", provider, exc)
			raise GenerationError(str(exc)) from exc
		formatted = self._format_response(raw_text)
		return formatted or EMPTY_ANSWER
