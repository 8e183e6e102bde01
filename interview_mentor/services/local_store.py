from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional
import json
import logging
import os

from interview_mentor.models import Question


logger = logging.getLogger(__name__)


def custom_questions_key(user_id: str) -> str:
	return f"custom_questions_{user_id}"


def answer_key(user_id: str, question_id: str) -> str:
	return f"answer_{user_id}_{question_id}"


def deleted_questions_key(user_id: str) -> str:
	return f"deleted_questions_{user_id}"


class LocalStore:
	"""Persistent string key-value store backed by one JSON file.

	With ``path=None`` the store lives in memory only. Disk writes are
	best-effort: an IO failure is logged and the in-memory value stays.
	"""

	def __init__(self, path: Optional[str] = None) -> None:
		self._data: Dict[str, str] = {}
		self._path = Path(path) / "store.json" if path else None
		if self._path is not None:
			self._path.parent.mkdir(parents=True, exist_ok=True)
			self._load()

	def _load(self) -> None:
		try:
			if self._path.exists():
				with self._path.open("r", encoding="utf-8") as f:
					raw = json.load(f)
				self._data = {str(k): str(v) for k, v in raw.items()}
		except (OSError, ValueError, AttributeError):
			logger.warning("Ignoring unreadable local cache at %s", self._path)
			self._data = {}

	def _flush(self) -> None:
		if self._path is None:
			return
		tmp = self._path.with_suffix(".tmp")
		try:
			with tmp.open("w", encoding="utf-8") as f:
				json.dump(self._data, f, ensure_ascii=False, indent=2)
			os.replace(tmp, self._path)
		except OSError as exc:
			logger.warning("Local cache write failed: %s", exc)

	def get(self, key: str) -> Optional[str]:
		return self._data.get(key)

	def set(self, key: str, value: str) -> None:
		if self._data.get(key) == value:
			return
		self._data[key] = value
		self._flush()

	def remove(self, key: str) -> None:
		if self._data.pop(key, None) is not None:
			self._flush()

	# Typed helpers over the raw keys

	def get_json(self, key: str, default=None):
		raw = self.get(key)
		if raw is None:
			return default
		try:
			return json.loads(raw)
		except ValueError:
			logger.warning("Dropping corrupt local cache entry %s", key)
			self.remove(key)
			return default

	def set_json(self, key: str, value) -> None:
		self.set(key, json.dumps(value, ensure_ascii=False))

	def custom_questions(self, user_id: str) -> List[Question]:
		items = self.get_json(custom_questions_key(user_id), default=[])
		questions: List[Question] = []
		for item in items if isinstance(items, list) else []:
			try:
				questions.append(Question.from_record(item))
			except (KeyError, TypeError):
				continue
		return questions

	def set_custom_questions(self, user_id: str, questions: List[Question]) -> None:
		self.set_json(custom_questions_key(user_id), [q.to_record() for q in questions])

	def answer(self, user_id: str, question_id: str) -> Optional[str]:
		return self.get(answer_key(user_id, question_id))

	def set_answer(self, user_id: str, question_id: str, answer: str) -> None:
		self.set(answer_key(user_id, question_id), answer)

	def remove_answer(self, user_id: str, question_id: str) -> None:
		self.remove(answer_key(user_id, question_id))

	def tombstones(self, user_id: str) -> List[str]:
		items = self.get_json(deleted_questions_key(user_id), default=[])
		return [str(i) for i in items] if isinstance(items, list) else []

	def set_tombstones(self, user_id: str, ids: List[str]) -> None:
		if ids:
			self.set_json(deleted_questions_key(user_id), sorted(set(ids)))
		else:
			self.remove(deleted_questions_key(user_id))
