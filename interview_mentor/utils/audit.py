from __future__ import annotations

import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Any
import asyncio


logger = logging.getLogger(__name__)


class JsonlAuditor:
	"""Append-only JSON lines record of user-visible events (answers, edits, sessions)."""

	def __init__(self, path: Optional[str] = None) -> None:
		self._path = Path(path) if path else None
		self._lock = asyncio.Lock()

	def configure(self, path: Optional[str]) -> None:
		self._path = Path(path) if path else None

	@property
	def enabled(self) -> bool:
		return self._path is not None

	async def record(self, event: str, user_id: Optional[str] = None, **fields: Any) -> None:
		if not self._path:
			return
		entry = {"ts": datetime.now(timezone.utc).isoformat(), "event": event}
		if user_id:
			entry["user_id"] = user_id
		entry.update({k: v for k, v in fields.items() if v is not None})
		line = json.dumps(entry, ensure_ascii=False, default=str)
		async with self._lock:
			try:
				self._path.parent.mkdir(parents=True, exist_ok=True)
				with self._path.open("a", encoding="utf-8") as f:
					f.write(line + "\n")
			except OSError as exc:
				logger.warning("Audit write failed: %s", exc)


auditor = JsonlAuditor()
