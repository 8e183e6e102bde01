from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx

from interview_mentor.errors import PermissionDeniedError, RemoteUnavailableError, SyncError


CUSTOM_QUESTIONS = "customQuestions"
ANSWERS = "answers"


class DocumentStore(Protocol):
	async def list_documents(self, user_id: str, collection: str) -> List[dict]: ...

	async def upsert_document(self, user_id: str, collection: str, doc_id: str, data: dict) -> None: ...

	async def delete_document(self, user_id: str, collection: str, doc_id: str) -> None: ...


def encode_value(value: Any) -> dict:
	if value is None:
		return {"nullValue": None}
	if isinstance(value, bool):
		return {"booleanValue": value}
	if isinstance(value, int):
		return {"integerValue": str(value)}
	if isinstance(value, float):
		return {"doubleValue": value}
	if isinstance(value, dict):
		return {"mapValue": {"fields": encode_fields(value)}}
	if isinstance(value, (list, tuple)):
		return {"arrayValue": {"values": [encode_value(v) for v in value]}}
	return {"stringValue": str(value)}


def encode_fields(data: dict) -> dict:
	return {key: encode_value(value) for key, value in data.items()}


def decode_value(value: dict) -> Any:
	if "stringValue" in value:
		return value["stringValue"]
	if "booleanValue" in value:
		return bool(value["booleanValue"])
	if "integerValue" in value:
		return int(value["integerValue"])
	if "doubleValue" in value:
		return float(value["doubleValue"])
	if "mapValue" in value:
		return decode_fields(value["mapValue"].get("fields", {}))
	if "arrayValue" in value:
		return [decode_value(v) for v in value["arrayValue"].get("values", [])]
	return None


def decode_fields(fields: dict) -> dict:
	return {key: decode_value(value) for key, value in fields.items()}


def decode_document(doc: dict) -> dict:
	data = decode_fields(doc.get("fields", {}))
	# Document id is the last path segment of the resource name
	data.setdefault("id", doc.get("name", "").rsplit("/", 1)[-1])
	return data


class FirestoreDocumentStore:
	"""Per-user Firestore collections over the REST API.

	Requests are made with the signed-in user's ID token so security rules
	apply; ``token_provider`` maps a user id to that token.
	"""

	def __init__(
		self,
		project_id: str,
		token_provider: Callable[[str], Optional[str]],
		*,
		base_url: str = "https://firestore.googleapis.com/v1",
		timeout: float = 10.0,
		client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self._project_id = project_id
		self._token_provider = token_provider
		self._base_url = base_url.rstrip("/")
		self._client = client or httpx.AsyncClient(timeout=timeout)
		self._owns_client = client is None

	def _collection_url(self, user_id: str, collection: str) -> str:
		return (
			f"{self._base_url}/projects/{self._project_id}/databases/(default)/documents/"
			f"users/{user_id}/{collection}"
		)

	def _headers(self, user_id: str) -> Dict[str, str]:
		token = self._token_provider(user_id)
		if not token:
			raise PermissionDeniedError("No signed-in credentials for user")
		return {"Authorization": f"Bearer {token}"}

	async def _request(self, method: str, url: str, user_id: str, **kwargs) -> httpx.Response:
		headers = self._headers(user_id)
		try:
			resp = await self._client.request(method, url, headers=headers, **kwargs)
		except httpx.TimeoutException as exc:
			raise RemoteUnavailableError(f"Firestore timed out: {exc}") from exc
		except httpx.TransportError as exc:
			raise RemoteUnavailableError(f"Firestore unreachable: {exc}") from exc
		_raise_for_status(resp, allow_not_found=(method == "DELETE"))
		return resp

	async def list_documents(self, user_id: str, collection: str) -> List[dict]:
		url = self._collection_url(user_id, collection)
		documents: List[dict] = []
		page_token: Optional[str] = None
		while True:
			params: Dict[str, Any] = {"pageSize": 300}
			if page_token:
				params["pageToken"] = page_token
			resp = await self._request("GET", url, user_id, params=params)
			try:
				body = resp.json() if resp.content else {}
				documents.extend(decode_document(d) for d in body.get("documents", []))
				page_token = body.get("nextPageToken")
			except (ValueError, TypeError, AttributeError) as exc:
				raise RemoteUnavailableError(f"Unreadable Firestore response: {exc}") from exc
			if not page_token:
				return documents

	async def upsert_document(self, user_id: str, collection: str, doc_id: str, data: dict) -> None:
		url = f"{self._collection_url(user_id, collection)}/{doc_id}"
		await self._request("PATCH", url, user_id, json={"fields": encode_fields(data)})

	async def delete_document(self, user_id: str, collection: str, doc_id: str) -> None:
		url = f"{self._collection_url(user_id, collection)}/{doc_id}"
		await self._request("DELETE", url, user_id)

	async def aclose(self) -> None:
		if self._owns_client:
			await self._client.aclose()


def _raise_for_status(resp: httpx.Response, *, allow_not_found: bool = False) -> None:
	if resp.status_code < 400:
		return
	if resp.status_code == 404 and allow_not_found:
		return
	status = ""
	message = resp.text
	try:
		error = resp.json().get("error", {})
		status = error.get("status", "")
		message = error.get("message", message)
	except (ValueError, AttributeError):
		pass
	if resp.status_code in (401, 403) or status in ("PERMISSION_DENIED", "UNAUTHENTICATED"):
		raise PermissionDeniedError(message or "Missing or insufficient permissions.")
	if resp.status_code >= 500 or status in ("UNAVAILABLE", "DEADLINE_EXCEEDED"):
		raise RemoteUnavailableError(message or "Firestore unavailable")
	raise SyncError(f"Firestore request failed ({resp.status_code}): {message}")
