from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set
import asyncio
import logging
import time

from interview_mentor.catalog import STATIC_QUESTIONS
from interview_mentor.errors import PermissionDeniedError, SyncError
from interview_mentor.models import CUSTOM_CATEGORY, Question, SyncResult, SyncStatus
from interview_mentor.services.document_store import ANSWERS, CUSTOM_QUESTIONS, DocumentStore
from interview_mentor.services.local_store import LocalStore


logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
	"""Custom questions plus an id -> answer map, from one side of the sync."""

	questions: List[Question] = field(default_factory=list)
	answers: Dict[str, str] = field(default_factory=dict)


@dataclass
class Repairs:
	local_answers: Dict[str, str] = field(default_factory=dict)
	local_questions: Optional[List[Question]] = None
	remote_questions: List[Question] = field(default_factory=list)
	remote_answers: Dict[str, str] = field(default_factory=dict)
	remote_deletes: List[str] = field(default_factory=list)


@dataclass
class MergeResult:
	questions: List[Question]
	repairs: Repairs


def creation_order(question: Question) -> int:
	try:
		return int(question.id)
	except ValueError:
		return -1


def order_questions(custom: Iterable[Question], catalog: Sequence[Question]) -> List[Question]:
	"""Custom questions newest first, then the catalog in its fixed order."""
	ordered = sorted(custom, key=creation_order, reverse=True)
	return ordered + list(catalog)


def merge(
	catalog: Sequence[Question],
	local: Snapshot,
	remote: Optional[Snapshot],
	tombstones: Iterable[str] = (),
) -> MergeResult:
	"""Resolve local and remote copies into one ordered list.

	Local records win over remote ones. A remote value that fills a gap
	in the local cache is reported as a local repair; local values the
	remote lacks are reported as remote repairs. ``remote=None`` means the
	remote side could not be read and only local data is used.
	"""
	deleted: Set[str] = set(tombstones)
	repairs = Repairs()

	custom: Dict[str, Question] = {}
	for q in local.questions:
		if q.id not in deleted and q.id not in custom:
			custom[q.id] = replace(q, is_custom=True, cached_answer=None)
	local_ids = set(custom)

	if remote is not None:
		remote_ids = set()
		for q in remote.questions:
			remote_ids.add(q.id)
			if q.id in deleted or q.id in custom:
				continue
			custom[q.id] = replace(q, is_custom=True, cached_answer=None)
		if set(custom) != local_ids:
			repairs.local_questions = sorted(custom.values(), key=creation_order, reverse=True)
		repairs.remote_questions = [custom[i] for i in sorted(local_ids - remote_ids, key=lambda i: custom[i].id)]
		repairs.remote_deletes = sorted(i for i in deleted if i in remote_ids or i in remote.answers)

	resolved: List[Question] = []
	for q in order_questions(custom.values(), catalog):
		answer = local.answers.get(q.id)
		if not answer and remote is not None:
			answer = remote.answers.get(q.id)
			if answer:
				repairs.local_answers[q.id] = answer
		elif answer and remote is not None and not remote.answers.get(q.id):
			repairs.remote_answers[q.id] = answer
		resolved.append(replace(q, cached_answer=answer or None))

	return MergeResult(questions=resolved, repairs=repairs)


def _remote_snapshot(custom_docs: List[dict], answer_docs: List[dict]) -> Snapshot:
	questions: List[Question] = []
	for doc in custom_docs:
		try:
			q = Question.from_record(doc)
		except (KeyError, TypeError):
			continue
		questions.append(replace(q, category=q.category or CUSTOM_CATEGORY))
	answers: Dict[str, str] = {}
	for doc in answer_docs:
		answer = doc.get("answer")
		if isinstance(answer, str) and answer:
			answers[str(doc.get("id"))] = answer
	return Snapshot(questions=questions, answers=answers)


def _status_for(exc: Exception) -> SyncResult:
	if isinstance(exc, PermissionDeniedError):
		return SyncResult([], SyncStatus.PERMISSION_DENIED, "Cloud sync unavailable: permission denied. Showing cached questions.")
	return SyncResult([], SyncStatus.OFFLINE, "Offline: showing cached questions.")


class QuestionReconciler:
	"""Keeps a user's question list consistent across memory, local cache and remote store."""

	def __init__(
		self,
		local: LocalStore,
		remote: Optional[DocumentStore] = None,
		catalog: Sequence[Question] = STATIC_QUESTIONS,
		clock: Callable[[], float] = time.time,
	) -> None:
		self._local = local
		self._remote = remote
		self._catalog = list(catalog)
		self._clock = clock
		self._views: Dict[str, List[Question]] = {}
		self._locks: Dict[str, asyncio.Lock] = {}
		self._last_id = 0

	def _lock(self, user_id: str) -> asyncio.Lock:
		lock = self._locks.get(user_id)
		if lock is None:
			lock = self._locks[user_id] = asyncio.Lock()
		return lock

	def _local_snapshot(self, user_id: str, extra_ids: Iterable[str] = ()) -> Snapshot:
		questions = self._local.custom_questions(user_id)
		ids = [q.id for q in self._catalog] + [q.id for q in questions] + list(extra_ids)
		answers: Dict[str, str] = {}
		for qid in ids:
			answer = self._local.answer(user_id, qid)
			if answer:
				answers[qid] = answer
		return Snapshot(questions=questions, answers=answers)

	def _rebuild_local(self, user_id: str) -> List[Question]:
		result = merge(self._catalog, self._local_snapshot(user_id), None, self._local.tombstones(user_id))
		self._views[user_id] = result.questions
		return result.questions

	def questions(self, user_id: str) -> List[Question]:
		view = self._views.get(user_id)
		if view is None:
			view = self._rebuild_local(user_id)
		return list(view)

	def get_question(self, user_id: str, question_id: str) -> Optional[Question]:
		for q in self.questions(user_id):
			if q.id == question_id:
				return q
		return None

	def _new_id(self, user_id: str) -> str:
		now = int(self._clock() * 1000)
		existing = [creation_order(q) for q in self._local.custom_questions(user_id)]
		candidate = max([now, self._last_id + 1] + [i + 1 for i in existing])
		self._last_id = candidate
		return str(candidate)

	async def sync(self, user_id: str) -> SyncResult:
		async with self._lock(user_id):
			tombstones = self._local.tombstones(user_id)
			if self._remote is None:
				questions = self._rebuild_local(user_id)
				return SyncResult(list(questions), SyncStatus.LOCAL_ONLY)

			# Both reads always settle so a failure never leaves the other one running
			custom_docs, answer_docs = await asyncio.gather(
				self._remote.list_documents(user_id, CUSTOM_QUESTIONS),
				self._remote.list_documents(user_id, ANSWERS),
				return_exceptions=True,
			)
			failure = next((r for r in (custom_docs, answer_docs) if isinstance(r, BaseException)), None)
			if failure is None:
				try:
					remote = _remote_snapshot(custom_docs, answer_docs)
				except Exception as exc:
					failure = exc
			if failure is not None:
				if not isinstance(failure, Exception):
					raise failure
				if isinstance(failure, SyncError):
					logger.warning("Sync for %s degraded to local cache: %s", user_id, failure)
				else:
					logger.exception("Unexpected remote failure while syncing %s", user_id, exc_info=failure)
				degraded = _status_for(failure)
				degraded.questions = list(self._rebuild_local(user_id))
				return degraded

			local = self._local_snapshot(user_id, extra_ids=[q.id for q in remote.questions])
			result = merge(self._catalog, local, remote, tombstones)
			repairs = result.repairs

			# Read-repair lands locally before the list is returned
			for qid, answer in repairs.local_answers.items():
				self._local.set_answer(user_id, qid, answer)
			if repairs.local_questions is not None:
				self._local.set_custom_questions(user_id, repairs.local_questions)
			self._views[user_id] = result.questions

			await self._push_repairs(user_id, repairs, tombstones)
			return SyncResult(list(result.questions), SyncStatus.SYNCED)

	async def _push_repairs(self, user_id: str, repairs: Repairs, tombstones: List[str]) -> None:
		for q in repairs.remote_questions:
			await self._remote_upsert(user_id, CUSTOM_QUESTIONS, q.id, q.to_record())
		for qid, answer in repairs.remote_answers.items():
			await self._remote_upsert(user_id, ANSWERS, qid, {"id": qid, "answer": answer})
		remaining = [qid for qid in tombstones if qid in repairs.remote_deletes]
		for qid in repairs.remote_deletes:
			if await self._remote_delete(user_id, qid):
				remaining.remove(qid)
		if remaining != tombstones:
			self._local.set_tombstones(user_id, remaining)

	async def _remote_upsert(self, user_id: str, collection: str, doc_id: str, data: dict) -> bool:
		if self._remote is None:
			return False
		try:
			await self._remote.upsert_document(user_id, collection, doc_id, data)
			return True
		except SyncError as exc:
			logger.warning("Remote write %s/%s failed for %s: %s", collection, doc_id, user_id, exc)
			return False

	async def _remote_delete(self, user_id: str, question_id: str) -> bool:
		if self._remote is None:
			return False
		try:
			await self._remote.delete_document(user_id, CUSTOM_QUESTIONS, question_id)
			await self._remote.delete_document(user_id, ANSWERS, question_id)
			return True
		except SyncError as exc:
			logger.warning("Remote delete of %s failed for %s: %s", question_id, user_id, exc)
			return False

	async def add_question(self, user_id: str, text: str) -> Question:
		text = text.strip()
		if not text:
			raise ValueError("Question text must not be empty")
		async with self._lock(user_id):
			question = Question(id=self._new_id(user_id), text=text, category=CUSTOM_CATEGORY, is_custom=True)
			await self._remote_upsert(user_id, CUSTOM_QUESTIONS, question.id, question.to_record())

			custom = [q for q in self._local.custom_questions(user_id) if q.id != question.id]
			self._local.set_custom_questions(user_id, [question] + custom)
			view = self._views.get(user_id)
			if view is None:
				self._rebuild_local(user_id)
			else:
				self._views[user_id] = [question] + view
			logger.info("Added custom question %s for %s", question.id, user_id)
			return question

	async def update_question(self, user_id: str, question_id: str, text: str) -> Optional[Question]:
		text = text.strip()
		if not text:
			raise ValueError("Question text must not be empty")
		async with self._lock(user_id):
			custom = self._local.custom_questions(user_id)
			target = next((q for q in custom if q.id == question_id), None)
			if target is None:
				return None
			updated = replace(target, text=text)
			self._local.set_custom_questions(user_id, [updated if q.id == question_id else q for q in custom])
			await self._remote_upsert(user_id, CUSTOM_QUESTIONS, question_id, updated.to_record())
			view = self.questions(user_id)
			self._views[user_id] = [replace(q, text=text) if q.id == question_id else q for q in view]
			return replace(updated, cached_answer=self._local.answer(user_id, question_id))

	async def record_answer(self, user_id: str, question_id: str, answer: str) -> None:
		if not answer or not answer.strip():
			return
		async with self._lock(user_id):
			await self._store_answer(user_id, question_id, answer)

	async def record_answer_if_absent(self, user_id: str, question_id: str, answer: str) -> str:
		"""Record ``answer`` unless one is already cached. Returns the answer that stands."""
		async with self._lock(user_id):
			existing = self._local.answer(user_id, question_id)
			if existing:
				return existing
			if answer and answer.strip():
				await self._store_answer(user_id, question_id, answer)
			return answer

	async def _store_answer(self, user_id: str, question_id: str, answer: str) -> None:
		self._local.set_answer(user_id, question_id, answer)
		view = self.questions(user_id)
		self._views[user_id] = [replace(q, cached_answer=answer) if q.id == question_id else q for q in view]
		await self._remote_upsert(user_id, ANSWERS, question_id, {"id": question_id, "answer": answer})

	async def delete_question(self, user_id: str, question_id: str, *, confirmed: bool = False) -> bool:
		"""Irreversibly remove a custom question. Returns False when nothing was deleted."""
		if not confirmed:
			logger.info("Delete of %s for %s ignored without confirmation", question_id, user_id)
			return False
		async with self._lock(user_id):
			custom = self._local.custom_questions(user_id)
			if not any(q.id == question_id for q in custom):
				return False
			self._local.set_custom_questions(user_id, [q for q in custom if q.id != question_id])
			self._local.remove_answer(user_id, question_id)
			view = self.questions(user_id)
			self._views[user_id] = [q for q in view if q.id != question_id]

			tombstones = self._local.tombstones(user_id)
			self._local.set_tombstones(user_id, tombstones + [question_id])
			if await self._remote_delete(user_id, question_id):
				self._local.set_tombstones(user_id, [t for t in self._local.tombstones(user_id) if t != question_id])
			logger.info("Deleted custom question %s for %s", question_id, user_id)
			return True
