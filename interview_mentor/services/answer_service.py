from __future__ import annotations

from dataclasses import dataclass, replace
import logging

from interview_mentor.errors import GenerationError
from interview_mentor.models import Question
from interview_mentor.services.llm_service import LLMService
from interview_mentor.services.reconciler import QuestionReconciler


logger = logging.getLogger(__name__)

GENERATION_FAILED_ANSWER = "Error generating expert answer. Please check your connection and try again."


@dataclass
class AnswerOutcome:
	question: Question
	answer: str
	cached: bool
	failed: bool = False


class AnswerService:
	"""Serves a question's answer from cache, generating it once when missing."""

	def __init__(self, reconciler: QuestionReconciler, llm: LLMService) -> None:
		self._reconciler = reconciler
		self._llm = llm

	async def answer_for(self, user_id: str, question: Question) -> AnswerOutcome:
		if question.cached_answer:
			return AnswerOutcome(question=question, answer=question.cached_answer, cached=True)

		try:
			answer = await self._llm.generate_expert_answer(question.text)
		except GenerationError as exc:
			logger.warning("Answer for %s unavailable: %s", question.id, exc)
			return AnswerOutcome(question=question, answer=GENERATION_FAILED_ANSWER, cached=False, failed=True)

		# A concurrent request may have cached its answer while this one was generating
		stored = await self._reconciler.record_answer_if_absent(user_id, question.id, answer)
		return AnswerOutcome(question=replace(question, cached_answer=stored), answer=stored, cached=stored != answer)
