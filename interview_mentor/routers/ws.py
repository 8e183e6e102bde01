from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from typing import Optional
import asyncio
import json
import logging

from interview_mentor.audio.websocket_devices import WebSocketMicrophone, WebSocketSpeaker
from interview_mentor.models import AuthSession
from interview_mentor.services.container import Services
from interview_mentor.services.mentor_session import MentorSession, SessionState, TERMINAL_STATES
from interview_mentor.utils.audit import auditor
from interview_mentor.utils.security import websocket_session


router = APIRouter()
logger = logging.getLogger(__name__)

_CLOSE = object()


async def _pump(websocket: WebSocket, outbound: asyncio.Queue) -> None:
	while True:
		message = await outbound.get()
		if message is _CLOSE:
			await websocket.close()
			return
		await websocket.send_json(message)


def _dispatch(text: str, microphone: WebSocketMicrophone) -> bool:
	"""Apply one client control message. Returns False when the client ends the session."""
	try:
		data = json.loads(text)
	except ValueError:
		logger.debug("Ignoring malformed mentor control message")
		return True
	kind = data.get("type") if isinstance(data, dict) else None
	if kind == "microphone":
		if data.get("granted"):
			microphone.grant()
		else:
			microphone.deny(data.get("reason"))
	elif kind == "end":
		return False
	return True


@router.websocket("/ws/mentor")
async def ws_mentor(websocket: WebSocket, auth: Optional[AuthSession] = Depends(websocket_session)):
	if auth is None:
		await websocket.close(code=4401)
		return
	services: Services = websocket.app.state.services
	subprotocol = websocket.headers.get("sec-websocket-protocol")
	await websocket.accept(subprotocol=subprotocol)

	if services.live_backend is None:
		await websocket.send_json({"type": "error", "message": "Mentor mode is not configured"})
		await websocket.close()
		return

	settings = services.settings
	outbound: asyncio.Queue = asyncio.Queue()

	def on_state(state: SessionState) -> None:
		outbound.put_nowait({"type": "session", "state": state.value})
		if state in TERMINAL_STATES:
			outbound.put_nowait(_CLOSE)

	microphone = WebSocketMicrophone(settings.live_frame_size, settings.microphone_timeout_seconds)
	speaker = WebSocketSpeaker(outbound.put_nowait, settings.live_output_sample_rate)
	mentor = MentorSession(
		services.live_backend,
		microphone,
		speaker,
		services.live_config(),
		output_sample_rate=settings.live_output_sample_rate,
		connect_timeout=settings.live_connect_timeout_seconds,
		on_interrupted=lambda: outbound.put_nowait({"type": "interrupted"}),
	)
	mentor.add_listener(on_state)
	pump = asyncio.create_task(_pump(websocket, outbound))
	starter = asyncio.create_task(mentor.start())

	try:
		while not mentor.terminal:
			msg = await websocket.receive()
			if msg["type"] == "websocket.disconnect":
				break
			if msg.get("bytes") is not None:
				microphone.feed(msg["bytes"])
			elif msg.get("text") is not None and not _dispatch(msg["text"], microphone):
				break
	except (WebSocketDisconnect, RuntimeError):
		# RuntimeError: receive() after the pump already closed the socket
		pass
	finally:
		await mentor.close()
		# The session is terminal; a connect still in flight is abandoned
		if not starter.done():
			starter.cancel()
		await asyncio.wait([starter])
		try:
			await asyncio.wait_for(pump, timeout=1.0)
		except (asyncio.TimeoutError, WebSocketDisconnect, RuntimeError):
			pump.cancel()
		await auditor.record(
			"mentor_session_ended",
			auth.user.uid,
			state=mentor.state.value,
			frames_sent=mentor.frames_sent,
			error=repr(mentor.error) if mentor.error else None,
		)
