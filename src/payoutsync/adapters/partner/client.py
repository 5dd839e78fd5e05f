"""HTTP clients for the partner platform's two API surfaces.

``OpenApiClient`` speaks the signed open API (app key, secret and access
token). ``PartnerCenterClient`` speaks the internal endpoints behind the
partner center web app, authenticated by the browser session cookie.
Both turn every transport, HTTP and envelope failure into ``PartnerAPIError``.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from payoutsync.adapters.http_resilience import ResilientClient
from payoutsync.domain.errors import TransientNetworkError

from .schema import ApiEnvelope

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from payoutsync.config.http_resilience import ResilienceConfig
    from payoutsync.config.partner import OpenApiCredentials, PartnerConfig

log = getLogger(__name__)

ACCESS_TOKEN_HEADER = "x-tts-access-token"
_UNSIGNED_PARAMS = frozenset({"sign", "access_token"})


class PartnerAPIError(TransientNetworkError):
    """Raised for any failed partner request: transport, HTTP status or error envelope."""


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def sign_request(
    path: str,
    params: Mapping[str, str],
    body: str,
    secret: str,
) -> str:
    """HMAC-SHA256 signature of an open-API request, as lowercase hex.

    The signed base string is the request path, then every query parameter
    except ``sign`` and ``access_token`` as ``key + value`` sorted by key, then
    the raw request body.
    """

    pieces = [path]
    pieces.extend(
        f"{key}{params[key]}" for key in sorted(params) if key not in _UNSIGNED_PARAMS
    )
    pieces.append(body)
    base = "".join(pieces)
    return hmac.new(secret.encode(), base.encode(), hashlib.sha256).hexdigest()


def _encode_body(body: Mapping[str, object] | None) -> str:
    if body is None:
        return ""
    return json.dumps(body, separators=(",", ":"))


def parse_envelope(response: httpx.Response, *, endpoint: str) -> ApiEnvelope:
    """Validate a partner response and raise ``PartnerAPIError`` for anything but success."""

    if response.is_redirect:
        location = response.headers.get("location", "")
        raise PartnerAPIError(
            f"{endpoint}: redirected to {location or 'unknown location'}",
            status_code=response.status_code,
        )
    if not response.is_success:
        raise PartnerAPIError(
            f"{endpoint}: HTTP {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError:
        raise PartnerAPIError(
            f"{endpoint}: response is not JSON", status_code=response.status_code
        ) from None
    if not isinstance(payload, dict):
        raise PartnerAPIError(f"{endpoint}: unexpected payload {type(payload).__name__}")

    try:
        envelope = ApiEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise PartnerAPIError(
            f"{endpoint}: malformed envelope ({exc.error_count()} errors)"
        ) from exc

    if not envelope.ok:
        log.error(f"Partner API error {envelope.code} on {endpoint}: {envelope.message}")
        raise PartnerAPIError(
            f"{endpoint}: {envelope.message or 'request rejected'}",
            code=envelope.code,
            status_code=response.status_code,
        )
    return envelope


async def _send(
    client: ResilientClient,
    method: str,
    path: str,
    *,
    params: Mapping[str, str],
    content: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> httpx.Response:
    try:
        return await client.request(
            method,
            path,
            params=dict(params),
            content=content,
            headers=dict(headers) if headers else None,
        )
    except httpx.TimeoutException as exc:
        raise PartnerAPIError(f"{path}: request timed out") from exc
    except httpx.HTTPError as exc:
        raise PartnerAPIError(f"{path}: {type(exc).__name__}: {exc}") from exc


@dataclass(slots=True)
class OpenApiClient:
    """Signed requests against the open API."""

    credentials: OpenApiCredentials
    resilience: ResilienceConfig
    api_version: str
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    clock: Callable[[], datetime] = field(default=_utcnow)

    @classmethod
    def from_config(
        cls,
        config: PartnerConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> OpenApiClient:
        if config.open_api is None:
            raise ValueError("Open API credentials are not configured")
        return cls(
            credentials=config.open_api,
            resilience=config.api_resilience(),
            api_version=config.api_version,
            client_factory=client_factory or _default_client_factory,
        )

    def session(self) -> ResilientClient:
        return self.client_factory(self.resilience)

    def signed_params(
        self, path: str, query: Mapping[str, str] | None, body: str
    ) -> dict[str, str]:
        params = {
            "app_key": self.credentials.app_key,
            "timestamp": str(int(self.clock().timestamp())),
            "version": self.api_version,
        }
        if query:
            params.update(query)
        params["sign"] = sign_request(path, params, body, self.credentials.app_secret)
        params["access_token"] = self.credentials.access_token
        return params

    async def call(
        self,
        client: ResilientClient,
        method: str,
        path: str,
        *,
        query: Mapping[str, str] | None = None,
        body: Mapping[str, object] | None = None,
    ) -> ApiEnvelope:
        encoded = _encode_body(body)
        response = await _send(
            client,
            method,
            path,
            params=self.signed_params(path, query, encoded),
            content=encoded or None,
            headers={ACCESS_TOKEN_HEADER: self.credentials.access_token},
        )
        return parse_envelope(response, endpoint=path)


@dataclass(slots=True)
class PartnerCenterClient:
    """Session-cookie requests against the partner center's internal endpoints."""

    resilience: ResilienceConfig
    aid: str
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    @classmethod
    def from_config(
        cls,
        config: PartnerConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> PartnerCenterClient:
        if config.session_cookie is None:
            raise ValueError("Partner session cookie is not configured")
        return cls(
            resilience=config.center_resilience(),
            aid=config.center_aid,
            client_factory=client_factory or _default_client_factory,
        )

    def session(self) -> ResilientClient:
        return self.client_factory(self.resilience)

    async def get(
        self,
        client: ResilientClient,
        path: str,
        *,
        query: Mapping[str, str] | None = None,
    ) -> ApiEnvelope:
        params = {"user_language": "en", "aid": self.aid}
        if query:
            params.update(query)
        response = await _send(client, "GET", path, params=params)
        return parse_envelope(response, endpoint=path)
