"""Bearer token resolution tests."""

from typing import List

import httpx
import pytest

from storefront.services.auth import BaseAuthService, HttpAuthService, MockAuthService, bearer_token


class TestBearerToken:

    @pytest.mark.parametrize("header, token", [
        ("Bearer abc", "abc"),
        ("bearer  abc ", "abc"),
        ("Basic abc", None),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ])
    def test_extraction(self, header, token):
        assert bearer_token(header) == token


class TestMockAuthService:

    @pytest.mark.asyncio
    async def test_registered_token_resolves_to_member(self):
        auth = MockAuthService()
        token = auth.register("user-1", "member@example.com", token="tok-1")

        session = await auth.get_session(token)

        assert token == "tok-1"
        assert session.user_id == "user-1"
        assert session.email == "member@example.com"
        assert session.access_token == "tok-1"

    @pytest.mark.asyncio
    async def test_unknown_or_revoked_token_is_guest(self):
        auth = MockAuthService()
        token = auth.register("user-1", None)
        auth.revoke(token)

        assert (await auth.get_session(token)).user_id is None
        assert (await auth.get_session(None)).user_id is None

    def test_guest_session_ids_are_unique(self):
        assert BaseAuthService.new_guest_session_id() != BaseAuthService.new_guest_session_id()


class TestHttpAuthService:

    @pytest.fixture
    def auth_settings(self, settings):
        settings.auth_user_endpoint_url = "http://auth.test/auth/v1/user"
        return settings

    @pytest.fixture
    def requests(self) -> List[httpx.Request]:
        return []

    def service(self, auth_settings, requests, response: httpx.Response) -> HttpAuthService:
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return response

        return HttpAuthService(auth_settings, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_resolves_user_from_provider(self, auth_settings, requests):
        auth = self.service(auth_settings, requests, httpx.Response(
            200, json={"id": "user-9", "email": "member@example.com", "role": "authenticated"},
        ))

        session = await auth.get_session("tok-9")

        assert session.is_authenticated
        assert session.user_id == "user-9"
        assert session.email == "member@example.com"
        assert session.access_token == "tok-9"
        (request,) = requests
        assert str(request.url) == "http://auth.test/auth/v1/user"
        assert request.headers["Authorization"] == "Bearer tok-9"
        assert request.headers["apikey"] == "anon-test-key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(401, json={"message": "invalid JWT"}),
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"email": "no-id@example.com"}),
        httpx.Response(200, text="not json"),
    ])
    async def test_rejected_lookup_is_guest(self, auth_settings, requests, response):
        auth = self.service(auth_settings, requests, response)
        session = await auth.get_session("tok-9")
        assert not session.is_authenticated
        assert session.access_token is None

    @pytest.mark.asyncio
    async def test_transport_failure_is_guest(self, auth_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        auth = HttpAuthService(auth_settings, transport=httpx.MockTransport(handler))
        assert not (await auth.get_session("tok-9")).is_authenticated

    @pytest.mark.asyncio
    async def test_missing_token_skips_the_provider(self, auth_settings, requests):
        auth = self.service(auth_settings, requests, httpx.Response(200, json={"id": "user-9"}))
        assert not (await auth.get_session(None)).is_authenticated
        assert requests == []
