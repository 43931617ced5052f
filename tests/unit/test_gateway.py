"""
Tests for the XRPC gateway using httpx.MockTransport.
"""

import json

import httpx
import pytest

from bluehorizon.core.errors import (
    CredentialFailure,
    InternalError,
    NetworkTransient,
    RemoteRejected,
)
from bluehorizon.core.gateway import HttpConnector, HttpGateway, ResourceType, StoredSession

STORED = StoredSession(
    did="did:plc:alice123",
    handle="alice.test",
    access_jwt="access-token",
    refresh_jwt="refresh-token",
    service_url="https://pds.test",
)

PARENT = {
    "uri": "at://did:plc:bob/app.bsky.feed.post/1",
    "cid": "parentcid",
    "record": {
        "reply": {"root": {"uri": "at://did:plc:carol/app.bsky.feed.post/0", "cid": "rootcid"}},
    },
}


class Recorder:
    """MockTransport handler routing by XRPC method name."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        nsid = request.url.path.rsplit("/", 1)[-1]
        route = self.routes[nsid]
        return route(request) if callable(route) else route

    def bodies(self, nsid):
        return [
            json.loads(r.content) for r in self.requests
            if r.url.path.endswith(nsid)
        ]


def gateway_for(routes):
    recorder = Recorder(routes)
    return HttpGateway(STORED, transport=httpx.MockTransport(recorder)), recorder


class TestFetch:
    """Read endpoints."""

    @pytest.mark.asyncio
    async def test_timeline(self):
        gateway, recorder = gateway_for({
            "app.bsky.feed.getTimeline": httpx.Response(200, json={"feed": [], "cursor": "c1"}),
        })

        data = await gateway.fetch(ResourceType.TIMELINE, {"limit": 50, "cursor": None})

        assert data == {"feed": [], "cursor": "c1"}
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.headers["Authorization"] == "Bearer access-token"
        assert request.url.params["limit"] == "50"
        assert "cursor" not in request.url.params
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_author_feed(self):
        gateway, recorder = gateway_for({
            "app.bsky.feed.getAuthorFeed": httpx.Response(200, json={"feed": []}),
        })

        await gateway.fetch(ResourceType.AUTHOR_FEED, {
            "actor": "bob.test", "limit": 50, "cursor": None,
            "filter": "posts_no_replies", "includePins": False,
        })

        params = recorder.requests[0].url.params
        assert params["actor"] == "bob.test"
        assert params["filter"] == "posts_no_replies"
        assert params["includePins"] == "false"
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway, _ = gateway_for({"app.bsky.actor.getProfile": refuse})

        with pytest.raises(NetworkTransient):
            await gateway.fetch(ResourceType.PROFILE, {"actor": "bob.test"})
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_error_status_is_rejected(self):
        gateway, _ = gateway_for({
            "app.bsky.actor.getProfile": httpx.Response(
                400, json={"error": "InvalidRequest", "message": "Profile not found"}
            ),
        })

        with pytest.raises(RemoteRejected) as exc_info:
            await gateway.fetch(ResourceType.PROFILE, {"actor": "nobody.test"})

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_name == "InvalidRequest"
        assert "Profile not found" in str(exc_info.value)
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_undecodable_body_is_internal(self):
        gateway, _ = gateway_for({
            "app.bsky.notification.getUnreadCount": httpx.Response(200, content=b"<html>"),
        })

        with pytest.raises(InternalError):
            await gateway.fetch(ResourceType.UNREAD_COUNT, {})
        await gateway.aclose()


class TestSendMutation:
    """Post record creation."""

    @pytest.mark.asyncio
    async def test_plain_post(self):
        gateway, recorder = gateway_for({
            "com.atproto.repo.createRecord": httpx.Response(200, json={"uri": "at://x", "cid": "y"}),
        })

        result = await gateway.send_mutation({"text": "hello", "images": []})

        assert result == {"uri": "at://x", "cid": "y"}
        body = recorder.bodies("com.atproto.repo.createRecord")[0]
        assert body["repo"] == "did:plc:alice123"
        assert body["collection"] == "app.bsky.feed.post"
        assert body["record"]["text"] == "hello"
        assert "reply" not in body["record"]
        assert "embed" not in body["record"]
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_reply_keeps_thread_root(self):
        gateway, recorder = gateway_for({
            "app.bsky.feed.getPosts": httpx.Response(200, json={"posts": [PARENT]}),
            "com.atproto.repo.createRecord": httpx.Response(200, json={"uri": "at://x", "cid": "y"}),
        })

        await gateway.send_mutation({"text": "reply", "reply_to": PARENT["uri"]})

        reply = recorder.bodies("com.atproto.repo.createRecord")[0]["record"]["reply"]
        assert reply["parent"] == {"uri": PARENT["uri"], "cid": "parentcid"}
        assert reply["root"]["cid"] == "rootcid"
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_missing_reply_target(self):
        gateway, _ = gateway_for({
            "app.bsky.feed.getPosts": httpx.Response(200, json={"posts": []}),
        })

        with pytest.raises(RemoteRejected):
            await gateway.send_mutation({"text": "reply", "reply_to": "at://gone"})
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_quote_with_image(self, tmp_path):
        image = tmp_path / "cat.png"
        image.write_bytes(b"\x89PNG fake")
        blob = {"$type": "blob", "ref": {"$link": "bafy"}, "mimeType": "image/png", "size": 9}

        gateway, recorder = gateway_for({
            "com.atproto.repo.uploadBlob": httpx.Response(200, json={"blob": blob}),
            "com.atproto.repo.createRecord": httpx.Response(200, json={"uri": "at://x", "cid": "y"}),
        })

        await gateway.send_mutation({
            "text": "look",
            "quote_uri": "at://quoted",
            "quote_cid": "qcid",
            "images": [{"path": str(image), "alt": "a cat", "mime_type": None}],
        })

        upload = [r for r in recorder.requests if r.url.path.endswith("uploadBlob")][0]
        assert upload.headers["Content-Type"] == "image/png"
        assert upload.content == b"\x89PNG fake"

        embed = recorder.bodies("com.atproto.repo.createRecord")[0]["record"]["embed"]
        assert embed["$type"] == "app.bsky.embed.recordWithMedia"
        assert embed["record"]["record"] == {"uri": "at://quoted", "cid": "qcid"}
        assert embed["media"]["images"] == [{"alt": "a cat", "image": blob}]
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_unreadable_image_is_internal(self, tmp_path):
        gateway, _ = gateway_for({})

        with pytest.raises(InternalError):
            await gateway.send_mutation({"text": "x", "images": [{"path": str(tmp_path / "missing.png")}]})
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_update_seen(self):
        gateway, recorder = gateway_for({
            "app.bsky.notification.updateSeen": httpx.Response(200),
        })

        await gateway.update_seen()

        assert "seenAt" in recorder.bodies("app.bsky.notification.updateSeen")[0]
        await gateway.aclose()


class TestConnector:
    """Session creation."""

    @pytest.mark.asyncio
    async def test_login(self):
        recorder = Recorder({
            "com.atproto.server.createSession": httpx.Response(200, json={
                "did": "did:plc:alice123",
                "handle": "alice.test",
                "accessJwt": "a",
                "refreshJwt": "r",
            }),
        })
        connector = HttpConnector(transport=httpx.MockTransport(recorder))

        stored = await connector.login("https://pds.test", "alice.test", "pw")

        assert stored.did == "did:plc:alice123"
        assert stored.service_url == "https://pds.test"
        assert recorder.bodies("createSession")[0] == {"identifier": "alice.test", "password": "pw"}

        gateway = connector.connect(stored)
        assert isinstance(gateway, HttpGateway)
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_rejected_login_is_credential_failure(self):
        recorder = Recorder({
            "com.atproto.server.createSession": httpx.Response(
                401, json={"error": "AuthenticationRequired", "message": "Invalid identifier or password"}
            ),
        })
        connector = HttpConnector(transport=httpx.MockTransport(recorder))

        with pytest.raises(CredentialFailure):
            await connector.login("https://pds.test", "alice.test", "wrong")

    @pytest.mark.asyncio
    async def test_unreachable_service_is_transient(self):
        def refuse(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        connector = HttpConnector(transport=httpx.MockTransport(Recorder({
            "com.atproto.server.createSession": refuse,
        })))

        with pytest.raises(NetworkTransient):
            await connector.login("https://pds.test", "alice.test", "pw")

    @pytest.mark.asyncio
    async def test_malformed_session_response(self):
        connector = HttpConnector(transport=httpx.MockTransport(Recorder({
            "com.atproto.server.createSession": httpx.Response(200, json={"did": "did:plc:x"}),
        })))

        with pytest.raises(InternalError):
            await connector.login("https://pds.test", "alice.test", "pw")
