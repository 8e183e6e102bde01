from typing import Callable, Dict, List, Optional, Tuple
import asyncio

import numpy as np
import pytest

from interview_mentor.errors import AccountExistsError, AuthError, InvalidCredentialsError, SyncError
from interview_mentor.models import Question
from interview_mentor.services.live_backend import LiveCallbacks, LiveConfig
from interview_mentor.services.local_store import LocalStore


CATALOG = [
	Question(id="1", text="What is a standalone component?", category="Core"),
	Question(id="2", text="Explain change detection.", category="Core"),
	Question(id="3", text="How do signals differ from observables?", category="Signals"),
]

FROZEN_NOW = 1_700_000_000.0


@pytest.fixture
def anyio_backend():
	return "asyncio"


async def settle(rounds: int = 20) -> None:
	"""Let queued callbacks and tasks run."""
	for _ in range(rounds):
		await asyncio.sleep(0)


# Document store


class FakeDocumentStore:
	"""In-memory per-user collections with switchable failures."""

	def __init__(self) -> None:
		self.collections: Dict[Tuple[str, str], Dict[str, dict]] = {}
		self.fail_reads: Optional[Exception] = None
		self.fail_writes: Optional[SyncError] = None
		self.fail_deletes: Optional[SyncError] = None
		self.writes: List[Tuple[str, str]] = []
		self.deletes: List[Tuple[str, str]] = []

	def docs(self, user_id: str, collection: str) -> Dict[str, dict]:
		return self.collections.setdefault((user_id, collection), {})

	async def list_documents(self, user_id: str, collection: str) -> List[dict]:
		if self.fail_reads is not None:
			raise self.fail_reads
		return [dict(d) for d in self.docs(user_id, collection).values()]

	async def upsert_document(self, user_id: str, collection: str, doc_id: str, data: dict) -> None:
		if self.fail_writes is not None:
			raise self.fail_writes
		self.docs(user_id, collection)[doc_id] = dict(data)
		self.writes.append((collection, doc_id))

	async def delete_document(self, user_id: str, collection: str, doc_id: str) -> None:
		if self.fail_deletes is not None:
			raise self.fail_deletes
		self.docs(user_id, collection).pop(doc_id, None)
		self.deletes.append((collection, doc_id))


@pytest.fixture
def local_store():
	return LocalStore()


@pytest.fixture
def remote():
	return FakeDocumentStore()


# Identity provider


class FakeIdentity:
	"""Identity provider holding accounts in memory, shaped like the REST responses."""

	def __init__(self) -> None:
		self.accounts: Dict[str, dict] = {}
		self.verification_sent: List[str] = []
		self._tokens: Dict[str, str] = {}
		self._seq = 0

	def add_account(self, email: str, password: str, *, verified: bool = True, display_name: Optional[str] = None) -> dict:
		account = {
			"uid": f"uid-{len(self.accounts) + 1}",
			"password": password,
			"verified": verified,
			"display_name": display_name,
		}
		self.accounts[email] = account
		return account

	def verify(self, email: str) -> None:
		self.accounts[email]["verified"] = True

	def _issue(self, email: str) -> dict:
		self._seq += 1
		token = f"id-token-{self._seq}"
		self._tokens[token] = email
		return {
			"idToken": token,
			"refreshToken": f"refresh-{self._seq}",
			"localId": self.accounts[email]["uid"],
			"email": email,
		}

	def _email_for(self, id_token: str) -> str:
		email = self._tokens.get(id_token)
		if email is None:
			raise AuthError("INVALID_ID_TOKEN", code="invalid-id-token")
		return email

	async def sign_up(self, email: str, password: str) -> dict:
		if email in self.accounts:
			raise AccountExistsError()
		self.add_account(email, password, verified=False)
		return self._issue(email)

	async def sign_in_with_password(self, email: str, password: str) -> dict:
		account = self.accounts.get(email)
		if account is None or account["password"] != password:
			raise InvalidCredentialsError()
		return self._issue(email)

	async def sign_in_with_google(self, google_id_token: str) -> dict:
		email = f"{google_id_token}@gmail.com"
		if email not in self.accounts:
			self.add_account(email, "", verified=True, display_name=google_id_token.title())
		tokens = self._issue(email)
		account = self.accounts[email]
		tokens.update(emailVerified=account["verified"], displayName=account["display_name"])
		return tokens

	async def update_profile(self, id_token: str, display_name: str) -> dict:
		self.accounts[self._email_for(id_token)]["display_name"] = display_name
		return {}

	async def send_email_verification(self, id_token: str) -> None:
		self.verification_sent.append(self._email_for(id_token))

	async def lookup(self, id_token: str) -> dict:
		email = self._email_for(id_token)
		account = self.accounts[email]
		return {
			"localId": account["uid"],
			"email": email,
			"displayName": account["display_name"],
			"emailVerified": account["verified"],
		}


# Audio output


class FakePlayback:
	def __init__(self, output: "FakeOutput", pcm: bytes, at: float, duration: float, on_ended: Callable[[], None]) -> None:
		self.output = output
		self.pcm = pcm
		self.at = at
		self.duration = duration
		self.on_ended = on_ended
		self.stopped = False
		self.ended = False

	@property
	def end(self) -> float:
		return self.at + self.duration

	def finish(self) -> None:
		if not self.ended:
			self.ended = True
			self.on_ended()

	def stop(self) -> None:
		# Stopping a source also fires its ended callback
		self.stopped = True
		self.finish()


class FakeOutput:
	"""AudioOutput with a hand-driven clock."""

	def __init__(self, now: float = 0.0) -> None:
		self.now = now
		self.started: List[FakePlayback] = []
		self.closed = 0
		self.fail_start: Optional[Exception] = None

	@property
	def current_time(self) -> float:
		return self.now

	def start(self, pcm: bytes, at: float, duration: float, on_ended: Callable[[], None]) -> FakePlayback:
		if self.fail_start is not None:
			raise self.fail_start
		playback = FakePlayback(self, pcm, at, duration, on_ended)
		self.started.append(playback)
		return playback

	def advance(self, seconds: float) -> None:
		self.now += seconds
		for playback in list(self.started):
			if not playback.ended and playback.end <= self.now + 1e-9:
				playback.finish()

	def close(self) -> None:
		self.closed += 1


def pcm_frame(seconds: float, sample_rate: int = 24000, value: int = 100) -> bytes:
	return np.full(int(round(seconds * sample_rate)), value, dtype="<i2").tobytes()


# Live backend and microphone


class FakeLiveHandle:
	def __init__(self, callbacks: LiveCallbacks) -> None:
		self.callbacks = callbacks
		self.sent: List[bytes] = []
		self.closed = 0
		self.fail_send: Optional[Exception] = None

	async def send_realtime_input(self, frame: bytes) -> None:
		if self.fail_send is not None:
			raise self.fail_send
		self.sent.append(frame)

	async def close(self) -> None:
		self.closed += 1


class FakeLiveBackend:
	def __init__(self, *, fail: Optional[Exception] = None, gate: Optional[asyncio.Event] = None, open_on_connect: bool = True) -> None:
		self.fail = fail
		self.gate = gate
		self.open_on_connect = open_on_connect
		self.configs: List[LiveConfig] = []
		self.handles: List[FakeLiveHandle] = []

	@property
	def handle(self) -> FakeLiveHandle:
		return self.handles[-1]

	async def connect(self, config: LiveConfig, callbacks: LiveCallbacks) -> FakeLiveHandle:
		self.configs.append(config)
		if self.gate is not None:
			await self.gate.wait()
		if self.fail is not None:
			raise self.fail
		handle = FakeLiveHandle(callbacks)
		self.handles.append(handle)
		if self.open_on_connect:
			callbacks.on_open()
		return handle


class FakeMicrophone:
	def __init__(self, error: Optional[Exception] = None) -> None:
		self.error = error
		self.opened = False
		self.closed = 0
		self.on_frame: Optional[Callable[[np.ndarray], None]] = None

	async def open(self) -> None:
		if self.error is not None:
			raise self.error
		self.opened = True

	def attach(self, on_frame: Callable[[np.ndarray], None]) -> None:
		self.on_frame = on_frame

	def emit(self, frame: np.ndarray) -> None:
		if self.on_frame is not None:
			self.on_frame(frame)

	def close(self) -> None:
		self.closed += 1
		self.on_frame = None


# Generation


class FakeLLM:
	provider = "fake"
	enabled = True

	def __init__(self, answer: str = "Use OnPush with signals.", error: Optional[Exception] = None) -> None:
		self.answer = answer
		self.error = error
		self.calls: List[str] = []

	async def generate_expert_answer(self, question_text: str) -> str:
		self.calls.append(question_text)
		if self.error is not None:
			raise self.error
		return self.answer


class FakeSpeech:
	enabled = True
	sample_rate = 24000

	def __init__(self, audio: str = "AAABAAIA", error: Optional[Exception] = None) -> None:
		self.audio = audio
		self.error = error
		self.calls: List[str] = []

	async def generate_tts(self, text: str) -> str:
		self.calls.append(text)
		if self.error is not None:
			raise self.error
		return self.audio
