from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


CUSTOM_CATEGORY = "Custom"


@dataclass
class Question:
	id: str
	text: str
	category: Optional[str] = None
	cached_answer: Optional[str] = None
	is_custom: bool = False

	def to_record(self) -> dict:
		"""Storage shape shared by the local cache and the remote collection.

		Answers are stored separately, so ``cachedAnswer`` is never part of a record.
		"""
		data = {"id": self.id, "text": self.text, "isCustom": self.is_custom}
		if self.category is not None:
			data["category"] = self.category
		return data

	@classmethod
	def from_record(cls, data: dict) -> "Question":
		return cls(
			id=str(data["id"]),
			text=str(data.get("text", "")),
			category=data.get("category"),
			cached_answer=data.get("cachedAnswer"),
			is_custom=bool(data.get("isCustom", False)),
		)


class SyncStatus(str, Enum):
	SYNCED = "synced"
	PERMISSION_DENIED = "permission-denied"
	OFFLINE = "offline"
	LOCAL_ONLY = "local-only"


@dataclass
class SyncResult:
	questions: List[Question]
	status: SyncStatus
	detail: Optional[str] = None

	@property
	def degraded(self) -> bool:
		return self.status in (SyncStatus.PERMISSION_DENIED, SyncStatus.OFFLINE)


@dataclass
class UserProfile:
	uid: str
	email: Optional[str] = None
	display_name: Optional[str] = None
	email_verified: bool = False


@dataclass
class AuthSession:
	token: str
	user: UserProfile
	id_token: str
	refresh_token: Optional[str] = None
