from __future__ import annotations

from typing import Callable, Dict, List, Optional, Protocol
import logging
import secrets

import httpx

from interview_mentor.errors import (
	AccountExistsError,
	AuthError,
	EmailNotVerifiedError,
	InvalidCredentialsError,
)
from interview_mentor.models import AuthSession, UserProfile


logger = logging.getLogger(__name__)

# Identity Toolkit error messages that mean "wrong email or password"
_CREDENTIAL_ERRORS = {
	"EMAIL_NOT_FOUND",
	"INVALID_PASSWORD",
	"INVALID_LOGIN_CREDENTIALS",
	"INVALID_EMAIL",
	"USER_DISABLED",
}


class IdentityProvider(Protocol):
	async def sign_up(self, email: str, password: str) -> dict: ...

	async def sign_in_with_password(self, email: str, password: str) -> dict: ...

	async def sign_in_with_google(self, google_id_token: str) -> dict: ...

	async def update_profile(self, id_token: str, display_name: str) -> dict: ...

	async def send_email_verification(self, id_token: str) -> None: ...

	async def lookup(self, id_token: str) -> dict: ...


class FirebaseIdentityClient:
	"""Thin async client for the Identity Toolkit REST endpoints."""

	def __init__(
		self,
		api_key: str,
		*,
		base_url: str = "https://identitytoolkit.googleapis.com/v1",
		request_uri: str = "http://localhost",
		timeout: float = 10.0,
		client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self._api_key = api_key
		self._base_url = base_url.rstrip("/")
		self._request_uri = request_uri
		self._client = client or httpx.AsyncClient(timeout=timeout)
		self._owns_client = client is None

	async def _post(self, endpoint: str, payload: dict) -> dict:
		url = f"{self._base_url}/accounts:{endpoint}"
		try:
			resp = await self._client.post(url, params={"key": self._api_key}, json=payload)
		except httpx.HTTPError as exc:
			raise AuthError(f"Identity provider unreachable: {exc}", code="network-request-failed") from exc
		if resp.status_code >= 400:
			message = ""
			try:
				message = resp.json().get("error", {}).get("message", "")
			except (ValueError, AttributeError):
				message = resp.text
			raise _map_error(message)
		return resp.json()

	async def sign_up(self, email: str, password: str) -> dict:
		return await self._post("signUp", {"email": email, "password": password, "returnSecureToken": True})

	async def sign_in_with_password(self, email: str, password: str) -> dict:
		return await self._post("signInWithPassword", {"email": email, "password": password, "returnSecureToken": True})

	async def sign_in_with_google(self, google_id_token: str) -> dict:
		return await self._post("signInWithIdp", {
			"postBody": f"id_token={google_id_token}&providerId=google.com",
			"requestUri": self._request_uri,
			"returnSecureToken": True,
			"returnIdpCredential": True,
		})

	async def update_profile(self, id_token: str, display_name: str) -> dict:
		return await self._post("update", {"idToken": id_token, "displayName": display_name, "returnSecureToken": False})

	async def send_email_verification(self, id_token: str) -> None:
		await self._post("sendOobCode", {"requestType": "VERIFY_EMAIL", "idToken": id_token})

	async def lookup(self, id_token: str) -> dict:
		body = await self._post("lookup", {"idToken": id_token})
		users = body.get("users") or []
		if not users:
			raise AuthError("Account not found", code="user-not-found")
		return users[0]

	async def aclose(self) -> None:
		if self._owns_client:
			await self._client.aclose()


def _map_error(message: str) -> AuthError:
	# Messages look like "INVALID_PASSWORD" or "TOO_MANY_ATTEMPTS_TRY_LATER : ..."
	code = (message or "").split(":", 1)[0].strip()
	if code in _CREDENTIAL_ERRORS:
		return InvalidCredentialsError()
	if code == "EMAIL_EXISTS":
		return AccountExistsError()
	return AuthError(message or "Authentication failed", code=code.lower().replace("_", "-") or None)


def _profile(info: dict) -> UserProfile:
	return UserProfile(
		uid=info.get("localId", ""),
		email=info.get("email"),
		display_name=info.get("displayName") or None,
		email_verified=bool(info.get("emailVerified", False)),
	)


AuthListener = Callable[[Optional[UserProfile]], None]


class AuthService:
	"""Server-side session layer over the identity provider.

	Unverified accounts never get a session: sign-up and sign-in both end
	signed out until the address is verified.
	"""

	def __init__(self, identity: IdentityProvider) -> None:
		self._identity = identity
		self._sessions: Dict[str, AuthSession] = {}
		self._listeners: List[AuthListener] = []

	def subscribe(self, listener: AuthListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def _notify(self, user: Optional[UserProfile]) -> None:
		for listener in list(self._listeners):
			try:
				listener(user)
			except Exception:
				logger.exception("Auth state listener failed")

	def _open_session(self, tokens: dict, user: UserProfile) -> AuthSession:
		session = AuthSession(
			token=secrets.token_urlsafe(32),
			user=user,
			id_token=tokens["idToken"],
			refresh_token=tokens.get("refreshToken"),
		)
		self._sessions[session.token] = session
		logger.info("User %s signed in", user.uid)
		self._notify(user)
		return session

	async def sign_up(self, email: str, password: str, display_name: str) -> UserProfile:
		tokens = await self._identity.sign_up(email, password)
		id_token = tokens["idToken"]
		if display_name:
			await self._identity.update_profile(id_token, display_name)
		await self._identity.send_email_verification(id_token)
		# Account exists but stays signed out until verified
		return UserProfile(uid=tokens.get("localId", ""), email=email, display_name=display_name or None, email_verified=False)

	async def sign_in(self, email: str, password: str) -> AuthSession:
		tokens = await self._identity.sign_in_with_password(email, password)
		user = _profile(await self._identity.lookup(tokens["idToken"]))
		if not user.email_verified:
			raise EmailNotVerifiedError(user.email or email)
		return self._open_session(tokens, user)

	async def sign_in_with_google(self, google_id_token: str) -> AuthSession:
		tokens = await self._identity.sign_in_with_google(google_id_token)
		user = _profile(tokens)
		if not user.email_verified:
			raise EmailNotVerifiedError(user.email)
		return self._open_session(tokens, user)

	async def resend_verification(self, email: str, password: str) -> None:
		tokens = await self._identity.sign_in_with_password(email, password)
		await self._identity.send_email_verification(tokens["idToken"])

	async def update_profile(self, token: str, display_name: str) -> UserProfile:
		session = self._sessions.get(token)
		if session is None:
			raise AuthError("Not signed in", code="not-signed-in")
		await self._identity.update_profile(session.id_token, display_name)
		session.user.display_name = display_name
		self._notify(session.user)
		return session.user

	def sign_out(self, token: str) -> bool:
		session = self._sessions.pop(token, None)
		if session is None:
			return False
		logger.info("User %s signed out", session.user.uid)
		self._notify(None)
		return True

	def resolve(self, token: Optional[str]) -> Optional[AuthSession]:
		if not token:
			return None
		return self._sessions.get(token)

	def id_token_for(self, user_id: str) -> Optional[str]:
		for session in self._sessions.values():
			if session.user.uid == user_id:
				return session.id_token
		return None
