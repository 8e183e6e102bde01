from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Query, Request, WebSocket, status
from typing import Optional

from interview_mentor.models import AuthSession
from interview_mentor.services.container import Services


def get_services(request: Request) -> Services:
	return request.app.state.services


def _bearer(authorization: Optional[str]) -> Optional[str]:
	if not authorization or not authorization.startswith("Bearer "):
		return None
	return authorization.removeprefix("Bearer ").strip() or None


async def require_session(
	authorization: Optional[str] = Header(default=None),
	services: Services = Depends(get_services),
) -> AuthSession:
	token = _bearer(authorization)
	if token is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing session token")
	session = services.auth.resolve(token)
	if session is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
	return session


def websocket_session(websocket: WebSocket, token: Optional[str] = Query(default=None)) -> Optional[AuthSession]:
	# Browsers cannot set headers on WebSocket upgrades: accept the token via
	# Sec-WebSocket-Protocol or a ?token= query parameter
	services: Services = websocket.app.state.services
	candidate = websocket.headers.get("sec-websocket-protocol") or token
	return services.auth.resolve(candidate)
