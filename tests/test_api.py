import asyncio
import time

import numpy as np
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from interview_mentor.config import Settings
from interview_mentor.errors import GenerationError, PermissionDeniedError
from interview_mentor.main import create_app
from interview_mentor.services.answer_service import GENERATION_FAILED_ANSWER, AnswerService
from interview_mentor.services.container import Services
from interview_mentor.services.identity import AuthService
from interview_mentor.services.local_store import LocalStore
from interview_mentor.services.reconciler import QuestionReconciler

from conftest import CATALOG, FakeDocumentStore, FakeIdentity, FakeLiveBackend, FakeLLM, FakeSpeech

ALICE = "alice@example.com"
PASSWORD = "secret1"


@pytest.fixture
def services():
	settings = Settings(
		firebase_api_key=None,
		gemini_api_key=None,
		groq_api_key=None,
		analytics_path=None,
		live_frame_size=4,
		microphone_timeout_seconds=5.0,
	)
	local_store = LocalStore()
	identity = FakeIdentity()
	documents = FakeDocumentStore()
	reconciler = QuestionReconciler(local_store, documents, catalog=CATALOG)
	llm = FakeLLM()
	return Services(
		settings=settings,
		local_store=local_store,
		identity=identity,
		auth=AuthService(identity),
		documents=documents,
		reconciler=reconciler,
		llm=llm,
		speech=FakeSpeech(),
		answers=AnswerService(reconciler, llm),
		live_backend=FakeLiveBackend(),
	)


@pytest.fixture
def client(services):
	with TestClient(create_app(services)) as c:
		yield c


@pytest.fixture
def token(client, services):
	services.identity.add_account(ALICE, PASSWORD, display_name="Alice")
	resp = client.post("/api/auth/login", json={"email": ALICE, "password": PASSWORD})
	assert resp.status_code == 200
	return resp.json()["token"]


def auth_headers(token):
	return {"Authorization": f"Bearer {token}"}


def test_health(client):
	resp = client.get("/health")
	assert resp.status_code == 200
	body = resp.json()
	assert body["status"] == "ok"
	assert body["remote_sync"] is True
	assert body["mentor"] is True


def test_sign_up_then_verify_then_login(client, services):
	resp = client.post("/api/auth/signup", json={"email": ALICE, "password": PASSWORD, "display_name": "Alice"})
	assert resp.status_code == 201
	assert resp.json()["status"] == "verification-sent"
	assert resp.json()["user"]["email_verified"] is False

	resp = client.post("/api/auth/login", json={"email": ALICE, "password": PASSWORD})
	assert resp.status_code == 403
	detail = resp.json()["detail"]
	assert detail["code"] == "verification-required"
	assert detail["email"] == ALICE

	services.identity.verify(ALICE)
	resp = client.post("/api/auth/login", json={"email": ALICE, "password": PASSWORD})
	assert resp.status_code == 200
	assert resp.json()["user"]["display_name"] == "Alice"


def test_auth_errors(client, services):
	services.identity.add_account(ALICE, PASSWORD)
	assert client.post("/api/auth/login", json={"email": ALICE, "password": "wrong"}).status_code == 401
	resp = client.post("/api/auth/signup", json={"email": ALICE, "password": PASSWORD})
	assert resp.status_code == 409
	assert resp.json()["detail"]["message"] == "User already exists. Please sign in"


def test_profile_and_logout(client, token):
	resp = client.patch("/api/auth/profile", json={"display_name": "Alice L."}, headers=auth_headers(token))
	assert resp.json()["display_name"] == "Alice L."
	assert client.get("/api/auth/me", headers=auth_headers(token)).json()["display_name"] == "Alice L."

	assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
	assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401


def test_questions_require_a_session(client):
	assert client.get("/api/questions").status_code == 401
	assert client.get("/api/questions", headers=auth_headers("bogus")).status_code == 401


def test_list_questions(client, token):
	resp = client.get("/api/questions", headers=auth_headers(token))
	body = resp.json()
	assert body["status"] == "synced"
	assert body["categories"] == ["All", "Core", "Signals"]
	assert [q["id"] for q in body["items"]] == ["1", "2", "3"]

	filtered = client.get("/api/questions", params={"category": "Signals"}, headers=auth_headers(token)).json()
	assert [q["id"] for q in filtered["items"]] == ["3"]


def test_degraded_sync_is_reported(client, token, services):
	services.documents.fail_reads = PermissionDeniedError("denied")
	body = client.get("/api/questions", headers=auth_headers(token)).json()
	assert body["status"] == "permission-denied"
	assert body["detail"].startswith("Cloud sync unavailable")
	assert len(body["items"]) == 3


def test_add_edit_delete_custom_question(client, token):
	headers = auth_headers(token)
	resp = client.post("/api/questions", json={"text": "What is zoneless?"}, headers=headers)
	assert resp.status_code == 201
	added = resp.json()
	assert added["is_custom"] is True
	assert added["category"] == "Custom"

	items = client.get("/api/questions", headers=headers).json()["items"]
	assert items[0]["id"] == added["id"]

	resp = client.patch(f"/api/questions/{added['id']}", json={"text": "What is zoneless Angular?"}, headers=headers)
	assert resp.json()["text"] == "What is zoneless Angular?"
	assert client.patch("/api/questions/1", json={"text": "nope"}, headers=headers).status_code == 404

	assert client.delete(f"/api/questions/{added['id']}", headers=headers).status_code == 400
	resp = client.delete(f"/api/questions/{added['id']}", params={"confirm": "true"}, headers=headers)
	assert resp.json() == {"status": "ok", "deleted": True}
	assert client.delete(f"/api/questions/{added['id']}", params={"confirm": "true"}, headers=headers).status_code == 404
	items = client.get("/api/questions", headers=headers).json()["items"]
	assert added["id"] not in [q["id"] for q in items]


def test_blank_question_rejected(client, token):
	assert client.post("/api/questions", json={"text": "   "}, headers=auth_headers(token)).status_code == 400


def test_answer_generated_once(client, token, services):
	headers = auth_headers(token)
	first = client.post("/api/questions/1/answer", headers=headers).json()
	second = client.post("/api/questions/1/answer", headers=headers).json()

	assert first["cached"] is False
	assert second["cached"] is True
	assert second["answer"] == first["answer"] == services.llm.answer
	assert len(services.llm.calls) == 1
	assert client.post("/api/questions/404/answer", headers=headers).status_code == 404


def test_failed_answer_returns_placeholder(client, token, services):
	services.llm.error = GenerationError("offline")
	body = client.post("/api/questions/2/answer", headers=auth_headers(token)).json()
	assert body["failed"] is True
	assert body["answer"] == GENERATION_FAILED_ANSWER

	services.llm.error = None
	assert client.post("/api/questions/2/answer", headers=auth_headers(token)).json()["cached"] is False


def test_speech_for_answer(client, token, services):
	headers = auth_headers(token)
	assert client.post("/api/questions/1/speech", headers=headers).status_code == 409

	client.post("/api/questions/1/answer", headers=headers)
	body = client.post("/api/questions/1/speech", headers=headers).json()
	assert body["audio"] == services.speech.audio
	assert body["sample_rate"] == 24000
	assert services.speech.calls == [services.llm.answer]

	resp = client.post("/api/questions/1/speech", params={"format": "wav"}, headers=headers)
	assert resp.headers["content-type"] == "audio/wav"
	assert resp.content[:4] == b"RIFF"

	services.speech.error = GenerationError("TTS Generation failed")
	assert client.post("/api/questions/1/speech", headers=headers).status_code == 502


def test_mentor_socket_rejects_anonymous(client):
	with pytest.raises(WebSocketDisconnect) as info:
		with client.websocket_connect("/ws/mentor"):
			pass
	assert info.value.code == 4401


def test_mentor_session_lifecycle(client, token, services):
	with client.websocket_connect(f"/ws/mentor?token={token}") as ws:
		assert ws.receive_json() == {"type": "session", "state": "connecting"}
		ws.send_json({"type": "microphone", "granted": True})
		assert ws.receive_json() == {"type": "session", "state": "active"}

		ws.send_bytes(np.zeros(4, dtype="<f4").tobytes())
		ws.send_json({"type": "end"})
		assert ws.receive_json() == {"type": "session", "state": "closed"}

	assert services.live_backend.handle.closed == 1


def test_mentor_session_microphone_denied(client, token, services):
	with client.websocket_connect(f"/ws/mentor?token={token}") as ws:
		assert ws.receive_json()["state"] == "connecting"
		ws.send_json({"type": "microphone", "granted": False, "reason": "NotAllowedError"})
		assert ws.receive_json() == {"type": "session", "state": "errored"}

	assert services.live_backend.handles == []


def test_mentor_socket_without_backend(client, token, services):
	services.live_backend = None
	with client.websocket_connect(f"/ws/mentor?token={token}") as ws:
		assert ws.receive_json()["type"] == "error"


def test_mentor_socket_closes_while_connect_hangs(client, token, services):
	services.settings.live_connect_timeout_seconds = None
	backend = services.live_backend = FakeLiveBackend(gate=asyncio.Event())
	with client.websocket_connect(f"/ws/mentor?token={token}") as ws:
		assert ws.receive_json()["state"] == "connecting"
		ws.send_json({"type": "microphone", "granted": True})
		for _ in range(200):
			if backend.configs:
				break
			time.sleep(0.01)
		assert len(backend.configs) == 1

		ws.send_json({"type": "end"})
		assert ws.receive_json() == {"type": "session", "state": "closed"}

	assert backend.handles == []
