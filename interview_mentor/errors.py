from __future__ import annotations

from typing import Optional


class MentorError(Exception):
	code = "error"

	def __init__(self, message: str = "", *, code: Optional[str] = None) -> None:
		super().__init__(message or self.__class__.__name__)
		self.message = message or self.__class__.__name__
		if code:
			self.code = code


class AuthError(MentorError):
	code = "auth-failed"


class InvalidCredentialsError(AuthError):
	code = "invalid-credentials"

	def __init__(self, message: str = "Email or password is incorrect") -> None:
		super().__init__(message)


class AccountExistsError(AuthError):
	code = "account-exists"

	def __init__(self, message: str = "User already exists. Please sign in") -> None:
		super().__init__(message)


class EmailNotVerifiedError(AuthError):
	"""Sign-in succeeded at the provider but the address is still unverified."""

	code = "verification-required"

	def __init__(self, email: Optional[str]) -> None:
		super().__init__(f"We have sent you a verification email to {email or 'your address'}. Please verify it and log in.")
		self.email = email


class SyncError(MentorError):
	code = "sync-failed"


class PermissionDeniedError(SyncError):
	code = "permission-denied"


class RemoteUnavailableError(SyncError):
	code = "unavailable"


class GenerationError(MentorError):
	code = "generation-failed"


class MediaError(MentorError):
	code = "media-failed"
