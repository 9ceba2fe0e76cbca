"""Tests for session context resolution and the conversation opener."""

import httpx
import pytest

from conftest import FakeOneMin, make_jwt
from onemin_proxy.chat.conversation import ConversationOpener
from onemin_proxy.core.exceptions import ConversationCreationError, SessionResolutionError
from onemin_proxy.core.upstream import UpstreamClient
from onemin_proxy.credentials.models import SessionContext
from onemin_proxy.session.resolver import TEAM_ID_PATHS, SessionContextResolver, dig, first_present


class Clock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def upstream(fake_upstream: FakeOneMin) -> UpstreamClient:
    return UpstreamClient("http://upstream.local", transport=fake_upstream.transport)


class TestFieldProbing:
    def test_dig_handles_missing_and_wrong_types(self):
        data = {"user": {"teams": [{"teamId": "t"}]}}
        assert dig(data, ("user", "teams", 0, "teamId")) == "t"
        assert dig(data, ("user", "teams", 1, "teamId")) is None
        assert dig(data, ("teams", 0)) is None
        assert dig({"teams": {"0": "x"}}, ("teams", 0)) is None

    @pytest.mark.parametrize(
        "data,expected",
        [
            ({"user": {"teams": [{"teamId": "a"}]}, "teams": [{"teamId": "b"}]}, "a"),
            ({"teams": [{"teamId": "b", "uuid": "c"}], "teamId": "d"}, "b"),
            ({"teams": [{"uuid": "c"}], "teamId": "d"}, "c"),
            ({"teamId": "d"}, "d"),
            ({"user": {"teams": [{"teamId": ""}]}, "teamId": "d"}, "d"),
            ({"user": {}}, None),
        ],
    )
    def test_team_id_probe_order(self, data, expected):
        assert first_present(data, TEAM_ID_PATHS) == expected


class TestSessionContextResolver:
    @pytest.mark.asyncio
    async def test_two_resolves_within_ttl_call_upstream_once(self, repository, fake_upstream, upstream):
        token = make_jwt()
        credential = await repository.add(token)
        clock = Clock(1_000_000)
        resolver = SessionContextResolver(upstream, repository, ttl_ms=3_600_000, clock=clock)

        first = await resolver.resolve(credential)
        clock.now += 3_599_999
        second = await resolver.resolve(credential)

        assert first is second
        assert first.team_id == "team-1"
        assert first.user_id == "user-uuid"
        assert first.user_name == "Ada"
        assert len(fake_upstream.calls_to("/users")) == 1
        await upstream.aclose()

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, repository, fake_upstream, upstream):
        credential = await repository.add(make_jwt())
        clock = Clock(1_000_000)
        resolver = SessionContextResolver(upstream, repository, ttl_ms=1000, clock=clock)

        await resolver.resolve(credential)
        clock.now += 1000
        await resolver.resolve(credential)

        assert len(fake_upstream.calls_to("/users")) == 2
        await upstream.aclose()

    @pytest.mark.asyncio
    async def test_context_persisted_on_record(self, repository, upstream):
        token = make_jwt()
        credential = await repository.add(token)
        resolver = SessionContextResolver(upstream, repository, clock=Clock(42))

        await resolver.resolve(credential)
        stored = await repository.get(token)

        assert stored.session_context == SessionContext(
            team_id="team-1", cached_at=42, user_id="user-uuid", user_name="Ada"
        )
        await upstream.aclose()

    @pytest.mark.asyncio
    async def test_sends_auth_header(self, repository, fake_upstream, upstream):
        token = make_jwt()
        credential = await repository.add(token)

        await SessionContextResolver(upstream, repository).resolve(credential)

        assert fake_upstream.requests[0].headers["x-auth-token"] == f"Bearer {token}"
        await upstream.aclose()

    @pytest.mark.asyncio
    async def test_missing_team_id_raises(self, repository, fake_upstream, upstream):
        credential = await repository.add(make_jwt())
        fake_upstream.user_reply = (200, {"user": {"uuid": "u", "teams": []}})

        with pytest.raises(SessionResolutionError) as exc_info:
            await SessionContextResolver(upstream, repository).resolve(credential)

        assert exc_info.value.status_code == 500
        assert (await repository.get(credential.secret)).session_context is None
        await upstream.aclose()

    @pytest.mark.asyncio
    async def test_identity_failure_raises(self, repository, fake_upstream, upstream):
        credential = await repository.add(make_jwt())
        fake_upstream.user_reply = (401, {"message": "unauthorized"})

        with pytest.raises(SessionResolutionError):
            await SessionContextResolver(upstream, repository).resolve(credential)
        await upstream.aclose()

    @pytest.mark.asyncio
    async def test_deleted_record_still_returns_context(self, repository, upstream):
        token = make_jwt()
        credential = await repository.add(token)
        await repository.delete(token)

        context = await SessionContextResolver(upstream, repository).resolve(credential)

        assert context.team_id == "team-1"
        assert await repository.get(token) is None
        await upstream.aclose()


class TestConversationOpener:
    @pytest.mark.asyncio
    async def test_opens_conversation(self, repository, fake_upstream, upstream):
        credential = await repository.add(make_jwt())

        conversation_id = await ConversationOpener(upstream).open(credential, "team-1", "user:\n" + "q" * 80)

        assert conversation_id == "conv-1"
        request = fake_upstream.calls_to("/conversations")[0]
        assert request.url.path == "/teams/team-1/features/conversations"
        body = fake_upstream.last_json("/conversations")
        assert body == {
            "type": "CHAT_WITH_AI",
            "title": ("user:\n" + "q" * 80)[:50],
            "fileList": [],
            "youtubeUrl": "",
        }
        await upstream.aclose()

    @pytest.mark.asyncio
    async def test_empty_hint_uses_default_title(self, repository, fake_upstream, upstream):
        credential = await repository.add(make_jwt())

        await ConversationOpener(upstream).open(credential, "team-1", "")

        assert fake_upstream.last_json("/conversations")["title"] == "New Chat"
        await upstream.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [
            (500, {"error": "boom"}),
            (200, {"conversation": {}}),
            (200, {"other": 1}),
            (200, "not json"),
        ],
    )
    async def test_failures_raise(self, repository, fake_upstream, upstream, reply):
        credential = await repository.add(make_jwt())
        fake_upstream.conversation_reply = reply

        with pytest.raises(ConversationCreationError) as exc_info:
            await ConversationOpener(upstream).open(credential, "team-1", "hi")

        assert exc_info.value.message == "Failed to create conversation"
        await upstream.aclose()

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self, repository):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        upstream = UpstreamClient("http://upstream.local", transport=httpx.MockTransport(handler))
        credential = await repository.add(make_jwt())

        with pytest.raises(ConversationCreationError):
            await ConversationOpener(upstream).open(credential, "team-1", "hi")
        await upstream.aclose()
