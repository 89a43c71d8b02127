"""Unit tests for client.py and refresh.py — bearer injection, 401 refresh and replay."""

import json
import threading
import time

import httpx
import pytest

from netra.errors import SessionExpiredError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_bearer(token: str):
    """Handler that accepts only ``Bearer <token>``."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") == f"Bearer {token}":
            return httpx.Response(200, json=[])
        return httpx.Response(401, json={"detail": "Token expired"})

    return handler


def _refresh_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"access_token": "new-access", "refresh_token": "new-refresh"})


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


# ---------------------------------------------------------------------------
# Plain requests
# ---------------------------------------------------------------------------


class TestRequestHeaders:
    def test_attaches_bearer_and_default_accept(self, client, fake_api) -> None:
        fake_api.add("GET", "/files/", json=[])
        client.request("GET", "/files/")
        request = fake_api.calls[0]
        assert request.headers["Authorization"] == "Bearer old-access"
        assert request.headers["Accept"] == "application/json"

    def test_keeps_caller_accept_header(self, client, fake_api) -> None:
        fake_api.add("GET", "/files/f1/preview", json={})
        client.request("GET", "/files/f1/preview", headers={"Accept": "*/*"})
        assert fake_api.calls[0].headers["Accept"] == "*/*"

    def test_no_authorization_without_access_token(self, make_client, fake_api) -> None:
        client = make_client(access=None, refresh=None)
        fake_api.add("GET", "/files/", json=[])
        client.request("GET", "/files/")
        assert "Authorization" not in fake_api.calls[0].headers

    def test_unauthenticated_request_skips_bearer(self, client, fake_api) -> None:
        fake_api.add("GET", "/auth/verify-email", json={})
        client.request("GET", "/auth/verify-email", authenticated=False)
        assert "Authorization" not in fake_api.calls[0].headers

    def test_network_error_propagates(self, client, fake_api) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fake_api.add("GET", "/files/", handler=boom)
        with pytest.raises(httpx.ConnectError):
            client.request("GET", "/files/")

    def test_error_status_is_returned_not_raised(self, client, fake_api) -> None:
        fake_api.add("GET", "/files/", status=500, json={"detail": "boom"})
        resp = client.request("GET", "/files/")
        assert resp.status_code == 500


# ---------------------------------------------------------------------------
# 401 handling
# ---------------------------------------------------------------------------


class TestUnauthorized:
    def test_refreshes_and_replays_once(self, client, fake_api) -> None:
        fake_api.add("GET", "/files/", handler=_require_bearer("new-access"))
        fake_api.add("POST", "/auth/refresh_token", handler=_refresh_ok)

        resp = client.request("GET", "/files/")

        assert resp.status_code == 200
        assert fake_api.count("POST", "/auth/refresh_token") == 1
        assert fake_api.count("GET", "/files/") == 2
        assert client.session.tokens().access == "new-access"
        assert client.session.tokens().refresh == "new-refresh"

    def test_refresh_request_body(self, client, fake_api) -> None:
        fake_api.add("GET", "/files/", handler=_require_bearer("new-access"))
        fake_api.add("POST", "/auth/refresh_token", handler=_refresh_ok)
        client.request("GET", "/files/")
        refresh_call = [r for r in fake_api.calls if r.url.path.endswith("/auth/refresh_token")][0]
        assert json.loads(refresh_call.content) == {"refresh_token": "old-refresh"}
        assert "Authorization" not in refresh_call.headers

    def test_second_401_after_replay_is_returned_as_is(self, client, fake_api) -> None:
        fake_api.add("GET", "/files/", status=401, json={"detail": "nope"})
        fake_api.add("POST", "/auth/refresh_token", handler=_refresh_ok)

        resp = client.request("GET", "/files/")

        assert resp.status_code == 401
        assert fake_api.count("GET", "/files/") == 2
        assert fake_api.count("POST", "/auth/refresh_token") == 1

    def test_without_refresh_token_401_is_returned(self, make_client, fake_api) -> None:
        client = make_client(access="old-access", refresh=None)
        fake_api.add("GET", "/files/", status=401, json={"detail": "nope"})

        resp = client.request("GET", "/files/")

        assert resp.status_code == 401
        assert fake_api.count("POST", "/auth/refresh_token") == 0

    def test_failed_refresh_clears_session_and_raises(self, client, fake_api) -> None:
        fake_api.add("GET", "/files/", status=401, json={"detail": "expired"})
        fake_api.add("POST", "/auth/refresh_token", status=401, json={"detail": "bad refresh"})

        with pytest.raises(SessionExpiredError):
            client.request("GET", "/files/")

        assert client.session.tokens().access is None
        assert client.session.tokens().refresh is None
        assert fake_api.count("GET", "/files/") == 1

    def test_unauthenticated_401_does_not_refresh(self, client, fake_api) -> None:
        fake_api.add("POST", "/auth/token", status=401, json={"detail": "bad credentials"})
        resp = client.request("POST", "/auth/token", authenticated=False)
        assert resp.status_code == 401
        assert fake_api.count("POST", "/auth/refresh_token") == 0


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrentExpiry:
    def _run_concurrently(self, client, n: int):
        results = [None] * n
        errors = []

        def worker(index: int) -> None:
            try:
                results[index] = client.request("GET", "/files/").status_code
            except Exception as exc:  # noqa: BLE001 - surfaced through the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
        for t in threads:
            t.start()
        return threads, results, errors

    def test_many_requests_share_one_refresh(self, client, fake_api) -> None:
        entered = threading.Event()
        release = threading.Event()

        def slow_refresh(request: httpx.Request) -> httpx.Response:
            entered.set()
            release.wait(5)
            return _refresh_ok(request)

        fake_api.add("GET", "/files/", handler=_require_bearer("new-access"))
        fake_api.add("POST", "/auth/refresh_token", handler=slow_refresh)

        threads, results, errors = self._run_concurrently(client, 8)
        assert entered.wait(5)
        assert _wait_for(lambda: fake_api.count("GET", "/files/") >= 8)
        release.set()
        for t in threads:
            t.join(5)

        assert errors == []
        assert results == [200] * 8
        assert fake_api.count("POST", "/auth/refresh_token") == 1

    def test_two_requests_with_expired_token_both_succeed(self, client, fake_api) -> None:
        fake_api.add("GET", "/files/", handler=_require_bearer("new-access"))
        fake_api.add("POST", "/auth/refresh_token", handler=_refresh_ok)

        threads, results, errors = self._run_concurrently(client, 2)
        for t in threads:
            t.join(5)

        assert errors == []
        assert results == [200, 200]
        assert fake_api.count("POST", "/auth/refresh_token") == 1

    def test_waiters_share_failure(self, client, fake_api) -> None:
        entered = threading.Event()
        release = threading.Event()

        def failing_refresh(request: httpx.Request) -> httpx.Response:
            entered.set()
            release.wait(5)
            return httpx.Response(400, json={"detail": "revoked"})

        fake_api.add("GET", "/files/", status=401, json={"detail": "expired"})
        fake_api.add("POST", "/auth/refresh_token", handler=failing_refresh)

        threads, results, errors = self._run_concurrently(client, 4)
        assert entered.wait(5)
        release.set()
        for t in threads:
            t.join(5)

        # Requests that only saw the 401 after the session was cleared get
        # it back unmodified; nobody gets a 200 and nobody refreshes again.
        assert len(errors) >= 1
        assert all(isinstance(e, SessionExpiredError) for e in errors)
        assert all(status in (None, 401) for status in results)
        assert client.session.tokens().access is None
        assert fake_api.count("POST", "/auth/refresh_token") == 1


# ---------------------------------------------------------------------------
# RefreshCoordinator directly
# ---------------------------------------------------------------------------


class TestRefreshCoordinator:
    def test_no_refresh_token_fails_without_network(self, make_client, fake_api) -> None:
        client = make_client(access="a", refresh=None)
        assert client.refresher.refresh() is False
        assert fake_api.calls == []

    def test_malformed_body_is_failure_without_mutation(self, client, fake_api) -> None:
        fake_api.add("POST", "/auth/refresh_token", json={"unexpected": True})
        assert client.refresher.refresh() is False
        assert client.session.tokens().access == "old-access"
        assert client.session.tokens().refresh == "old-refresh"

    def test_transport_error_is_failure(self, client, fake_api) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        fake_api.add("POST", "/auth/refresh_token", handler=boom)
        assert client.refresher.refresh() is False
        assert client.refresher.refreshing is False

    def test_returns_to_idle_after_each_cycle(self, client, fake_api) -> None:
        fake_api.add("POST", "/auth/refresh_token", status=500, json={"detail": "down"})
        assert client.refresher.refresh() is False
        fake_api.add("POST", "/auth/refresh_token", handler=_refresh_ok)
        assert client.refresher.refresh() is True
        assert fake_api.count("POST", "/auth/refresh_token") == 2
        assert client.refresher.refreshing is False

    def test_stale_access_already_replaced_skips_exchange(self, client, fake_api) -> None:
        client.session.set_tokens("newer-access", "newer-refresh")
        assert client.refresher.refresh(stale_access="old-access") is True
        assert fake_api.calls == []
