"""Async httpx client for the Skribble qualified e-signature API.

Low-level transport only: auth, timeouts, status checking and event
emission. Payload shaping for documents and sessions lives in
src.signing.orchestrator.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from src.admin.events import emit
from src.config import SkribbleSettings
from src.errors import ProviderAuthError, ProviderError, WorkflowTimeoutError
from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

_SOURCE = "integrations.skribble.client"
_USER_AGENT = "kvg-switch/1.0"
_LOGIN_PATH = "/v2/access/login"
_ACCOUNT_PATH = "/v2/account"
_BODY_EXCERPT = 500


class SkribbleClient:
    """Thin async wrapper around the Skribble v2 REST API.

    Auth: Bearer token. With a username configured the client logs in at
    /v2/access/login and caches the returned JWT; otherwise the API key is
    sent as the bearer token directly.
    """

    def __init__(self, config: SkribbleSettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._base_url = config.skribble_base_url.rstrip("/")
        self._timeout = httpx.Timeout(config.request_timeout, connect=config.connect_timeout)
        self._transport = transport

        # Only shared mutable state in the service
        self._token: str | None = None
        self._token_expiry: float = 0.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={"Accept": "application/json", "User-Agent": _USER_AGENT},
        )

    # ── Auth ─────────────────────────────────────────────────────────

    @property
    def uses_login(self) -> bool:
        return bool(self._config.skribble_username)

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expiry = 0.0

    async def login(self) -> str:
        """Exchange username + API key for a short-lived JWT.

        Raises:
            ProviderAuthError: If the provider rejects the credentials or answers
                with something that is not a token.
            WorkflowTimeoutError: If the login call times out.
        """
        logger.info("Logging in to Skribble as %s", self._config.skribble_username)
        try:
            async with self._client() as client:
                response = await client.post(
                    _LOGIN_PATH,
                    json={"username": self._config.skribble_username, "api-key": self._config.skribble_api_key},
                )
        except httpx.TimeoutException as exc:
            msg = "Skribble login timed out"
            raise WorkflowTimeoutError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"Skribble login failed: {exc}"
            raise ProviderAuthError(msg) from exc

        token = response.text.strip()
        if response.is_error or not token.startswith("ey"):
            logger.warning("Skribble login rejected: HTTP %d", response.status_code)
            msg = f"Skribble authentication failed: HTTP {response.status_code}"
            raise ProviderAuthError(msg)

        self._token = token
        self._token_expiry = time.monotonic() + self._config.token_ttl_seconds
        return token

    async def access_token(self) -> str:
        """Current bearer token, logging in when the cached one has expired."""
        if not self.uses_login:
            return self._config.skribble_api_key
        if self._token and time.monotonic() < self._token_expiry:
            return self._token
        return await self.login()

    # ── Requests ─────────────────────────────────────────────────────

    async def request(
        self,
        method: str,
        path: str,
        *,
        error_cls: type[ProviderError] = ProviderError,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send an authenticated request and return the successful response.

        A 401/403 with login auth triggers one re-login and a single retry.

        Raises:
            error_cls: On any non-2xx answer, with status and raw body attached.
            WorkflowTimeoutError: On transport timeout.
            ProviderAuthError: If re-authentication fails.
        """
        await emit(SystemEvent(
            event_type=EventType.EXTERNAL_API_CALL,
            data={"integration": "skribble", "method": method, "path": path},
            source_module=_SOURCE,
        ))

        started = time.monotonic()
        response = await self._send(method, path, error_cls, **kwargs)
        if response.status_code in (401, 403) and self.uses_login:
            logger.info("Skribble answered %d, re-authenticating once", response.status_code)
            self.invalidate_token()
            response = await self._send(method, path, error_cls, **kwargs)

        await emit(SystemEvent(
            event_type=EventType.EXTERNAL_API_RESPONSE,
            data={
                "integration": "skribble",
                "method": method,
                "path": path,
                "status": response.status_code,
                "elapsed_ms": int((time.monotonic() - started) * 1000),
            },
            source_module=_SOURCE,
        ))

        if response.is_error:
            body = response.text[:_BODY_EXCERPT]
            logger.warning("Skribble %s %s failed: HTTP %d %s", method, path, response.status_code, body)
            msg = f"Skribble {method} {path} failed with HTTP {response.status_code}"
            raise error_cls(msg, status_code=response.status_code, body=body)
        return response

    async def _send(self, method: str, path: str, error_cls: type[ProviderError], **kwargs: Any) -> httpx.Response:
        token = await self.access_token()
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}
        try:
            async with self._client() as client:
                return await client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Skribble %s %s timed out", method, path)
            await emit(SystemEvent(
                event_type=EventType.EXTERNAL_API_RESPONSE,
                data={"integration": "skribble", "path": path, "error": "timeout"},
                source_module=_SOURCE,
            ))
            msg = f"Skribble {method} {path} timed out"
            raise WorkflowTimeoutError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"Skribble {method} {path} transport error: {exc}"
            raise error_cls(msg) from exc

    # ── Endpoints ────────────────────────────────────────────────────

    async def upload_document(
        self,
        title: str,
        pdf_bytes: bytes,
        metadata: dict[str, Any],
        error_cls: type[ProviderError] = ProviderError,
    ) -> dict[str, Any]:
        """POST /v2/documents as multipart: the PDF plus a JSON metadata part."""
        response = await self.request(
            "POST",
            "/v2/documents",
            error_cls=error_cls,
            files={"file": (f"{title}.pdf", pdf_bytes, "application/pdf")},
            data={"metadata": json.dumps(metadata)},
        )
        return _json(response, error_cls)

    async def create_signing_session(
        self,
        payload: dict[str, Any],
        error_cls: type[ProviderError] = ProviderError,
    ) -> dict[str, Any]:
        response = await self.request("POST", "/v2/signing-sessions", error_cls=error_cls, json=payload)
        return _json(response, error_cls)

    async def get_document(self, document_id: str, error_cls: type[ProviderError] = ProviderError) -> dict[str, Any]:
        response = await self.request("GET", f"/v2/documents/{document_id}", error_cls=error_cls)
        return _json(response, error_cls)

    async def get_signing_session(
        self,
        session_id: str,
        error_cls: type[ProviderError] = ProviderError,
    ) -> dict[str, Any]:
        response = await self.request("GET", f"/v2/signing-sessions/{session_id}", error_cls=error_cls)
        return _json(response, error_cls)

    async def download_content(self, document_id: str, error_cls: type[ProviderError] = ProviderError) -> bytes:
        response = await self.request(
            "GET",
            f"/v2/documents/{document_id}/content",
            error_cls=error_cls,
            headers={"Accept": "application/pdf"},
        )
        return response.content

    async def get_audit_trail(self, document_id: str, error_cls: type[ProviderError] = ProviderError) -> dict[str, Any]:
        response = await self.request("GET", f"/v2/documents/{document_id}/audit-trail", error_cls=error_cls)
        return _json(response, error_cls)

    async def ping(self) -> bool:
        """True when credentials work and the account endpoint answers."""
        try:
            await self.request("GET", _ACCOUNT_PATH)
        except (ProviderError, ProviderAuthError, WorkflowTimeoutError) as exc:
            logger.warning("Skribble connection check failed: %s", exc)
            return False
        return True


def _json(response: httpx.Response, error_cls: type[ProviderError]) -> Any:
    """Decode a 2xx JSON body; a 2xx that is not JSON is still a provider failure."""
    try:
        return response.json()
    except ValueError as exc:
        msg = f"Skribble answered HTTP {response.status_code} with a non-JSON body"
        raise error_cls(msg, status_code=response.status_code, body=response.text[:_BODY_EXCERPT]) from exc
