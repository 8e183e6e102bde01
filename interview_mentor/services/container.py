from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging

from interview_mentor.config import Settings
from interview_mentor.errors import AuthError
from interview_mentor.services.answer_service import AnswerService
from interview_mentor.services.document_store import DocumentStore, FirestoreDocumentStore
from interview_mentor.services.identity import AuthService, FirebaseIdentityClient, IdentityProvider
from interview_mentor.services.live_backend import GeminiLiveBackend, LiveBackend, LiveConfig
from interview_mentor.services.llm_service import LLMService
from interview_mentor.services.local_store import LocalStore
from interview_mentor.services.reconciler import QuestionReconciler
from interview_mentor.services.speech_service import SpeechService


logger = logging.getLogger(__name__)


class _UnconfiguredIdentity:
	"""Stands in when no Firebase API key is configured; every call fails as an auth error."""

	async def _fail(self, *args, **kwargs):
		raise AuthError("Identity provider is not configured", code="not-configured")

	sign_up = sign_in_with_password = sign_in_with_google = _fail
	update_profile = send_email_verification = lookup = _fail


@dataclass
class Services:
	"""Every collaborator the routers use, built once per application."""

	settings: Settings
	local_store: LocalStore
	identity: Optional[IdentityProvider]
	auth: AuthService
	documents: Optional[DocumentStore]
	reconciler: QuestionReconciler
	llm: LLMService
	speech: SpeechService
	answers: AnswerService
	live_backend: Optional[LiveBackend]

	def live_config(self) -> LiveConfig:
		return LiveConfig(
			model=self.settings.live_model,
			system_instruction=self.settings.live_system_instruction,
			voice_name=self.settings.live_voice,
			input_sample_rate=self.settings.live_input_sample_rate,
		)

	async def aclose(self) -> None:
		for resource in (self.documents, self.identity):
			closer = getattr(resource, "aclose", None)
			if closer is not None:
				await closer()


def build_services(settings: Settings) -> Services:
	local_store = LocalStore(settings.cache_dir)

	identity: Optional[IdentityProvider] = None
	if settings.firebase_api_key:
		identity = FirebaseIdentityClient(
			settings.firebase_api_key,
			base_url=settings.identity_base_url,
			request_uri=settings.google_request_uri,
			timeout=settings.remote_timeout_seconds,
		)
	else:
		logger.warning("FIREBASE_API_KEY not set; sign-in is unavailable")
	auth = AuthService(identity) if identity is not None else AuthService(_UnconfiguredIdentity())

	documents: Optional[DocumentStore] = None
	if settings.remote_enabled:
		documents = FirestoreDocumentStore(
			settings.firebase_project_id,
			auth.id_token_for,
			base_url=settings.firestore_base_url,
			timeout=settings.remote_timeout_seconds,
		)

	reconciler = QuestionReconciler(local_store, documents)
	llm = LLMService(settings)
	live_backend: Optional[LiveBackend] = None
	if settings.gemini_api_key:
		live_backend = GeminiLiveBackend(settings.gemini_api_key)

	return Services(
		settings=settings,
		local_store=local_store,
		identity=identity,
		auth=auth,
		documents=documents,
		reconciler=reconciler,
		llm=llm,
		speech=SpeechService(settings),
		answers=AnswerService(reconciler, llm),
		live_backend=live_backend,
	)

