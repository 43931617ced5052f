"""
Remote Gateway

Boundary to the remote protocol service. Every call returns a result or
raises a classified BlueHorizonError:

- transport errors and timeouts  -> NetworkTransient
- rejected login                 -> CredentialFailure
- any other non-2xx response     -> RemoteRejected
- undecodable response body      -> InternalError

Payload schemas are passed through as plain dicts; this layer does not
validate them.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import time
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel

from .errors import CredentialFailure, InternalError, NetworkTransient, RemoteRejected
from .observability import create_span, record_histogram

logger = logging.getLogger(__name__)

POST_COLLECTION = "app.bsky.feed.post"


class ResourceType(str, Enum):
    """Readable remote resources."""
    TIMELINE = "timeline"
    NOTIFICATIONS = "notifications"
    PROFILE = "profile"
    UNREAD_COUNT = "unread_count"
    AUTHOR_FEED = "author_feed"


READ_ENDPOINTS: Dict[ResourceType, str] = {
    ResourceType.TIMELINE: "app.bsky.feed.getTimeline",
    ResourceType.NOTIFICATIONS: "app.bsky.notification.listNotifications",
    ResourceType.PROFILE: "app.bsky.actor.getProfile",
    ResourceType.UNREAD_COUNT: "app.bsky.notification.getUnreadCount",
    ResourceType.AUTHOR_FEED: "app.bsky.feed.getAuthorFeed",
}


class Identity(BaseModel):
    """The authenticated account."""

    did: str
    handle: str


class StoredSession(BaseModel):
    """Credentials of an established remote session."""

    did: str
    handle: str
    access_jwt: str
    refresh_jwt: str
    service_url: str

    @property
    def identity(self) -> Identity:
        return Identity(did=self.did, handle=self.handle)


class RemoteGateway(Protocol):
    """Calls bound to one authenticated session."""

    async def send_mutation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def fetch(self, resource_type: ResourceType, params: Dict[str, Any]) -> Any:
        ...

    async def update_seen(self) -> None:
        ...

    async def aclose(self) -> None:
        ...


class Connector(Protocol):
    """Creates sessions and the gateways bound to them."""

    async def login(self, service_url: str, identifier: str, password: str) -> StoredSession:
        ...

    def connect(self, stored: StoredSession) -> RemoteGateway:
        ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def _xrpc(
    client: httpx.AsyncClient,
    method: str,
    nsid: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
    content: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """Perform one XRPC call and classify its failure."""
    query = {k: v for k, v in (params or {}).items() if v is not None}
    started = time.monotonic()

    with create_span("gateway.xrpc", {"xrpc.nsid": nsid}):
        try:
            response = await client.request(
                method,
                f"/xrpc/{nsid}",
                params=query or None,
                json=json_body,
                content=content,
                headers=headers,
            )
        except httpx.TransportError as e:
            # TimeoutException is a TransportError
            raise NetworkTransient(f"{nsid}: {e}") from e
        finally:
            record_histogram("gateway_call_duration_seconds", time.monotonic() - started, {"nsid": nsid})

    if response.status_code >= 400:
        error_name = None
        message = response.text
        try:
            body = response.json()
            error_name = body.get("error")
            message = body.get("message") or error_name or message
        except ValueError:
            pass
        raise RemoteRejected(f"{nsid}: {message}", status_code=response.status_code, error_name=error_name)

    if not response.content:
        return {}

    try:
        return response.json()
    except ValueError as e:
        raise InternalError(f"{nsid}: undecodable response body: {e}") from e


class HttpGateway:
    """
    Gateway bound to one session, speaking XRPC over httpx.

    Usage:
        gateway = HttpGateway(stored_session)
        timeline = await gateway.fetch(ResourceType.TIMELINE, {"limit": 50})
        await gateway.aclose()
    """

    def __init__(
        self,
        stored: StoredSession,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._stored = stored
        self._client = httpx.AsyncClient(
            base_url=stored.service_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {stored.access_jwt}"},
        )

    @property
    def did(self) -> str:
        return self._stored.did

    async def fetch(self, resource_type: ResourceType, params: Dict[str, Any]) -> Any:
        nsid = READ_ENDPOINTS[ResourceType(resource_type)]
        return await _xrpc(self._client, "GET", nsid, params=params)

    async def send_mutation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a post record from a composition payload."""
        record: Dict[str, Any] = {
            "$type": POST_COLLECTION,
            "text": payload.get("text", ""),
            "createdAt": _now_iso(),
        }

        if payload.get("reply_to"):
            record["reply"] = await self._reply_ref(payload["reply_to"])

        embed = await self._build_embed(payload)
        if embed:
            record["embed"] = embed

        return await _xrpc(
            self._client,
            "POST",
            "com.atproto.repo.createRecord",
            json_body={"repo": self._stored.did, "collection": POST_COLLECTION, "record": record},
        )

    async def update_seen(self) -> None:
        await _xrpc(
            self._client,
            "POST",
            "app.bsky.notification.updateSeen",
            json_body={"seenAt": _now_iso()},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _reply_ref(self, parent_uri: str) -> Dict[str, Any]:
        data = await _xrpc(self._client, "GET", "app.bsky.feed.getPosts", params={"uris": parent_uri})
        posts = data.get("posts") or []
        if not posts:
            raise RemoteRejected(f"reply target not found: {parent_uri}", status_code=404, error_name="NotFound")

        parent = {"uri": posts[0]["uri"], "cid": posts[0]["cid"]}
        root = (posts[0].get("record") or {}).get("reply", {}).get("root") or parent
        return {"root": root, "parent": parent}

    async def _build_embed(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        images = []
        for image in payload.get("images") or []:
            blob = await self._upload_image(image)
            images.append({"alt": image.get("alt", ""), "image": blob})

        quote = None
        if payload.get("quote_uri") and payload.get("quote_cid"):
            quote = {
                "$type": "app.bsky.embed.record",
                "record": {"uri": payload["quote_uri"], "cid": payload["quote_cid"]},
            }

        media = {"$type": "app.bsky.embed.images", "images": images} if images else None

        if quote and media:
            return {"$type": "app.bsky.embed.recordWithMedia", "record": quote, "media": media}
        return quote or media

    async def _upload_image(self, image: Dict[str, Any]) -> Dict[str, Any]:
        path = Path(image["path"])
        try:
            content = path.read_bytes()
        except OSError as e:
            raise InternalError(f"cannot read image {path}: {e}") from e

        mime_type = image.get("mime_type") or mimetypes.guess_type(path.name)[0] or "image/jpeg"
        data = await _xrpc(
            self._client,
            "POST",
            "com.atproto.repo.uploadBlob",
            content=content,
            headers={"Content-Type": mime_type},
        )
        return data["blob"]


class HttpConnector:
    """Logs in over XRPC and builds HttpGateway instances."""

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._timeout = timeout
        self._transport = transport

    async def login(self, service_url: str, identifier: str, password: str) -> StoredSession:
        async with httpx.AsyncClient(
            base_url=service_url, timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                data = await _xrpc(
                    client,
                    "POST",
                    "com.atproto.server.createSession",
                    json_body={"identifier": identifier, "password": password},
                )
            except RemoteRejected as e:
                if e.status_code == 401 or e.error_name == "AuthenticationRequired":
                    raise CredentialFailure(f"Authentication failed: {e.message}") from e
                raise

        try:
            return StoredSession(
                did=data["did"],
                handle=data["handle"],
                access_jwt=data["accessJwt"],
                refresh_jwt=data["refreshJwt"],
                service_url=service_url,
            )
        except (KeyError, TypeError) as e:
            raise InternalError(f"malformed createSession response: {json.dumps(data)[:200]}") from e

    def connect(self, stored: StoredSession) -> HttpGateway:
        return HttpGateway(stored, timeout=self._timeout, transport=self._transport)
