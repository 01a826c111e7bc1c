import os
import tempfile
import unittest

import httpx

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from config import DashboardConfig
from dataspot_api.auth import RedirectLocation
from dataspot_api.errors import AuthError, AuthErrorKind, DataError, DataErrorKind
from dataspot_api.models import Credential
from dataspot_api.session import STABLE_STATES, AuthState, build_session
from dataspot_api.token_manager import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY


class FakeSpotify:
    """Answers like the Spotify API for a set of valid bearer tokens."""

    def __init__(self):
        self.valid_tokens = {"valid_token"}
        self.refresh_to = None  # access token handed out by /api/token
        self.requests = []
        self.top_artists = {"items": [{"name": "Artist 1", "popularity": 90}, {"name": "Artist 2", "popularity": 85}]}
        self.overrides = {}

    def paths(self):
        return [r.url.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/api/token":
            if self.refresh_to is None:
                return httpx.Response(400, json={"error": "invalid_grant"})
            self.valid_tokens.add(self.refresh_to)
            return httpx.Response(200, json={"access_token": self.refresh_to, "token_type": "Bearer", "expires_in": 3600})

        if path in self.overrides:
            status, body = self.overrides[path]
            return httpx.Response(status, json=body)

        token = request.headers.get("Authorization", "").replace("Bearer ", "", 1)
        if token not in self.valid_tokens:
            return httpx.Response(401, json={"error": {"status": 401, "message": "Invalid access token"}})

        if path == "/v1/me":
            return httpx.Response(200, json={"id": "u", "display_name": "Test User", "images": [], "followers": {"total": 3}})
        if path == "/v1/me/playlists":
            return httpx.Response(200, json={"items": [], "total": 2})
        if path == "/v1/me/top/artists":
            return httpx.Response(200, json=self.top_artists)
        if path == "/v1/me/top/tracks":
            return httpx.Response(200, json={"items": []})
        return httpx.Response(404)


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.config = DashboardConfig.from_dict(
            {
                "spotify_client_id": "cid",
                "accounts_base_url": "https://accounts.test",
                "api_base_url": "https://api.test/v1",
                "storage_file": os.path.join(self.tmp.name, "storage.json"),
            },
            environ={},
        )
        self.api = FakeSpotify()
        self.http = httpx.AsyncClient(transport=httpx.MockTransport(self.api.handler))
        self.session = build_session(self.config, http_client=self.http)
        self.store = self.session.token_manager.store

    async def asyncTearDown(self):
        await self.session.aclose()
        await self.http.aclose()
        self.tmp.cleanup()


class TestStartFromUrl(SessionTestCase):
    async def test_valid_fragment_end_to_end(self):
        location = RedirectLocation("http://localhost:3000/#access_token=valid_token")

        state = await self.session.start(location)
        self.assertEqual(state, AuthState.AUTHENTICATED)
        self.assertIsNone(self.session.error)
        self.assertEqual(self.store.get(ACCESS_TOKEN_KEY), "valid_token")
        self.assertFalse(location.has_fragment())

        data = await self.session.load_dashboard()
        self.assertEqual(len(data.top_artists), 2)
        self.assertEqual(data.top_artists[0].name, "Artist 1")
        self.assertEqual(data.top_artists[1].name, "Artist 2")
        self.assertIs(self.session.data, data)

    async def test_invalid_fragment_end_to_end(self):
        state = await self.session.start(RedirectLocation("http://localhost:3000/#access_token=invalid_token"))

        self.assertEqual(state, AuthState.LOGGED_OUT)
        self.assertIsInstance(self.session.error, AuthError)
        self.assertEqual(self.session.error.kind, AuthErrorKind.INVALID)
        self.assertNotIn("/v1/me/top/artists", self.api.paths())
        self.assertIsNone(self.store.get(ACCESS_TOKEN_KEY))

        with self.assertRaises(AuthError):
            await self.session.load_dashboard()
        self.assertNotIn("/v1/me/top/artists", self.api.paths())

    async def test_error_fragment_logs_out(self):
        state = await self.session.start(RedirectLocation("http://localhost:3000/#error=access_denied"))
        self.assertEqual(state, AuthState.LOGGED_OUT)
        self.assertEqual(self.session.error.kind, AuthErrorKind.INVALID)
        self.assertEqual(self.api.requests, [])

    async def test_network_failure_is_surfaced_as_such(self):
        self.api.overrides["/v1/me"] = (503, {})
        state = await self.session.start(RedirectLocation("http://localhost:3000/#access_token=valid_token"))
        self.assertEqual(state, AuthState.LOGGED_OUT)
        self.assertEqual(self.session.error.kind, AuthErrorKind.NETWORK_FAILURE)


class TestStartFromStorage(SessionTestCase):
    async def test_nothing_anywhere_is_logged_out(self):
        self.assertEqual(await self.session.start(), AuthState.LOGGED_OUT)
        self.assertIsNone(self.session.error)
        self.assertEqual(self.api.requests, [])

    async def test_valid_stored_token_resumes(self):
        self.store.set(ACCESS_TOKEN_KEY, "valid_token")
        self.assertEqual(await self.session.start(), AuthState.AUTHENTICATED)
        self.assertEqual(self.session.credential.access_token, "valid_token")

    async def test_invalid_stored_token_is_cleared(self):
        self.store.set(ACCESS_TOKEN_KEY, "stale")
        self.store.set(REFRESH_TOKEN_KEY, "r")
        self.assertEqual(await self.session.start(), AuthState.LOGGED_OUT)
        self.assertIsNone(self.store.get(ACCESS_TOKEN_KEY))
        self.assertIsNone(self.store.get(REFRESH_TOKEN_KEY))

    async def test_network_failure_keeps_stored_token(self):
        self.store.set(ACCESS_TOKEN_KEY, "valid_token")
        self.api.overrides["/v1/me"] = (500, {})
        self.assertEqual(await self.session.start(), AuthState.LOGGED_OUT)
        self.assertEqual(self.store.get(ACCESS_TOKEN_KEY), "valid_token")

    async def test_fragment_takes_precedence_over_storage(self):
        self.store.set(ACCESS_TOKEN_KEY, "old")
        await self.session.start(RedirectLocation("http://localhost:3000/#access_token=valid_token"))
        self.assertEqual(self.session.credential.access_token, "valid_token")
        self.assertEqual(self.store.get(ACCESS_TOKEN_KEY), "valid_token")


class TestRefreshAndRetry(SessionTestCase):
    async def _login_with(self, credential: Credential):
        self.api.valid_tokens.add(credential.access_token)
        self.store.set(ACCESS_TOKEN_KEY, credential.access_token)
        if credential.refresh_token:
            self.store.set(REFRESH_TOKEN_KEY, credential.refresh_token)
        self.assertEqual(await self.session.start(), AuthState.AUTHENTICATED)

    async def test_401_triggers_one_refresh_then_succeeds(self):
        await self._login_with(Credential(access_token="short_lived", refresh_token="r1"))
        self.api.valid_tokens.discard("short_lived")
        self.api.refresh_to = "fresh"

        data = await self.session.load_dashboard()

        self.assertEqual(data.top_artists[0].name, "Artist 1")
        self.assertEqual(self.session.state, AuthState.AUTHENTICATED)
        self.assertEqual(self.session.credential.access_token, "fresh")
        self.assertEqual(self.session.credential.refresh_token, "r1")
        self.assertEqual(self.store.get(ACCESS_TOKEN_KEY), "fresh")
        self.assertEqual(self.api.paths().count("/api/token"), 1)

    async def test_failed_refresh_logs_out(self):
        await self._login_with(Credential(access_token="short_lived", refresh_token="r1"))
        self.api.valid_tokens.discard("short_lived")

        with self.assertRaises(AuthError) as ctx:
            await self.session.load_dashboard()

        self.assertEqual(ctx.exception.kind, AuthErrorKind.EXPIRED)
        self.assertEqual(self.session.state, AuthState.LOGGED_OUT)
        self.assertIsNone(self.session.credential)
        self.assertIsNone(self.store.get(ACCESS_TOKEN_KEY))

    async def test_no_refresh_token_logs_out_without_exchange(self):
        await self._login_with(Credential(access_token="implicit_only"))
        self.api.valid_tokens.discard("implicit_only")

        with self.assertRaises(AuthError):
            await self.session.load_dashboard()
        self.assertNotIn("/api/token", self.api.paths())
        self.assertEqual(self.session.state, AuthState.LOGGED_OUT)

    async def test_second_401_after_refresh_is_terminal(self):
        await self._login_with(Credential(access_token="short_lived", refresh_token="r1"))
        self.api.overrides["/v1/me/top/artists"] = (401, {"error": {"status": 401}})
        self.api.refresh_to = "fresh"

        with self.assertRaises(AuthError) as ctx:
            await self.session.load_dashboard()

        self.assertEqual(ctx.exception.kind, AuthErrorKind.EXPIRED)
        self.assertEqual(self.api.paths().count("/api/token"), 1)
        self.assertEqual(self.session.state, AuthState.LOGGED_OUT)
        self.assertIsNone(self.store.get(ACCESS_TOKEN_KEY))

    async def test_upstream_error_propagates_without_retry(self):
        await self._login_with(Credential(access_token="valid_token", refresh_token="r1"))
        self.api.overrides["/v1/me/top/tracks"] = (500, {})

        with self.assertRaises(DataError) as ctx:
            await self.session.load_dashboard()

        self.assertEqual(ctx.exception.kind, DataErrorKind.UPSTREAM)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertNotIn("/api/token", self.api.paths())
        self.assertEqual(self.session.state, AuthState.AUTHENTICATED)
        self.assertIs(self.session.error, ctx.exception)

    async def test_later_success_clears_previous_error(self):
        await self._login_with(Credential(access_token="valid_token"))
        self.api.overrides["/v1/me/top/tracks"] = (500, {})
        with self.assertRaises(DataError):
            await self.session.load_profile_page()
        self.assertIsNotNone(self.session.error)

        self.api.overrides["/v1/search"] = (200, {"artists": {"items": []}})
        await self.session.search("artist", ["artist"])
        self.assertIsNone(self.session.error)

    async def test_credential_past_expiry_is_refreshed_before_request(self):
        await self._login_with(Credential(access_token="short_lived", refresh_token="r1"))
        self.session.credential = Credential(access_token="short_lived", refresh_token="r1", expires_at=0.0)
        self.api.refresh_to = "fresh"

        await self.session.load_dashboard()

        self.assertEqual(self.session.credential.access_token, "fresh")
        self.assertEqual(self.api.paths().count("/api/token"), 1)
        reads = [r for r in self.api.requests if r.url.path.startswith("/v1/me/")]
        self.assertTrue(all(r.headers["Authorization"] == "Bearer fresh" for r in reads))

    async def test_401_after_early_refresh_is_terminal(self):
        await self._login_with(Credential(access_token="short_lived", refresh_token="r1"))
        self.session.credential = Credential(access_token="short_lived", refresh_token="r1", expires_at=0.0)
        self.api.refresh_to = "fresh"
        self.api.overrides["/v1/me/top/artists"] = (401, {"error": {"status": 401}})

        with self.assertRaises(AuthError):
            await self.session.load_dashboard()
        self.assertEqual(self.api.paths().count("/api/token"), 1)
        self.assertEqual(self.session.state, AuthState.LOGGED_OUT)


class TestLogout(SessionTestCase):
    async def test_logout_clears_memory_and_storage(self):
        await self.session.start(RedirectLocation("http://localhost:3000/#access_token=valid_token"))
        await self.session.load_dashboard()

        self.session.logout()

        self.assertEqual(self.session.state, AuthState.LOGGED_OUT)
        self.assertIsNone(self.session.credential)
        self.assertIsNone(self.session.data)
        self.assertIsNone(self.store.get(ACCESS_TOKEN_KEY))

        # A later start in the same run finds nothing stored.
        requests_before = len(self.api.requests)
        self.assertEqual(await self.session.start(), AuthState.LOGGED_OUT)
        self.assertEqual(len(self.api.requests), requests_before)

    async def test_public_operations_end_in_stable_states(self):
        await self.session.start(RedirectLocation("http://localhost:3000/#access_token=valid_token"))
        self.assertIn(self.session.state, STABLE_STATES)
        self.session.logout()
        self.assertIn(self.session.state, STABLE_STATES)


class TestSessionSearch(SessionTestCase):
    async def test_search_goes_through_session(self):
        await self.session.start(RedirectLocation("http://localhost:3000/#access_token=valid_token"))
        self.api.overrides["/v1/search"] = (200, {"artists": {"items": [{"id": "1", "name": "Artist 1"}]}})

        results = await self.session.search("artist", ["artist"])
        self.assertEqual([h.name for h in results.artists], ["Artist 1"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
