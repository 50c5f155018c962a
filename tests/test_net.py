import asyncio
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest
from urllib3 import HTTPResponse

from fetchlib.config import FetchConfig
from fetchlib.errors import InvalidResponseError
from fetchlib.fetcher import Fetcher
from fetchlib.net import UrllibTransport, parse_endpoint
from fetchlib.types import FetchRequest, HttpMethod


class FakePool:
    def __init__(self, response: HTTPResponse):
        self.response = response
        self.calls = []
        self.cleared = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.response

    def clear(self):
        self.cleared = True


def test_parse_endpoint():
    assert parse_endpoint("https://example.com/api/users?id=1") == "https://example.com/api/users?id=1"
    assert parse_endpoint("http://127.0.0.1:8999/test") == "http://127.0.0.1:8999/test"
    assert parse_endpoint("not a url") is None
    assert parse_endpoint("example.com") is None
    assert parse_endpoint("") is None
    assert parse_endpoint("https://example.com/a b") is None


def test_transport_maps_response():
    resp = HTTPResponse(body=b'{"ok": true}', headers={"Content-Type": "application/json"}, status=201)
    pool = FakePool(resp)
    transport = UrllibTransport(FetchConfig(user_agent="ua/1"), http=pool)
    req = FetchRequest(url="https://example.com/x", method=HttpMethod.POST, body=b"{}", headers={"X-Id": "7"})

    raw = asyncio.run(transport.execute(req))

    assert raw.status == 201
    assert raw.body == b'{"ok": true}'
    assert raw.headers["Content-Type"] == "application/json"
    assert raw.is_http
    method, url, kwargs = pool.calls[0]
    assert (method, url) == ("POST", "https://example.com/x")
    assert kwargs["body"] == b"{}"
    assert kwargs["retries"] is transport.retries
    assert kwargs["redirect"] is True
    assert kwargs["headers"] == {
        "User-Agent": "ua/1",
        "Accept": "application/json",
        "X-Id": "7",
        "Content-Type": "application/json",
    }


def test_transport_keeps_caller_content_type():
    pool = FakePool(HTTPResponse(body=b"{}", status=200))
    transport = UrllibTransport(http=pool)
    req = FetchRequest(
        url="https://example.com/x", method=HttpMethod.PUT, body=b"{}", headers={"content-type": "text/plain"}
    )
    asyncio.run(transport.execute(req))
    headers = pool.calls[0][2]["headers"]
    assert headers["content-type"] == "text/plain"
    assert "Content-Type" not in headers


def test_transport_errors_propagate():
    class FailingPool(FakePool):
        def request(self, method, url, **kwargs):
            raise ConnectionResetError("reset")

    transport = UrllibTransport(http=FailingPool(None))
    with pytest.raises(ConnectionResetError):
        asyncio.run(transport.execute(FetchRequest(url="https://example.com", method=HttpMethod.GET)))


def test_close_clears_pool():
    pool = FakePool(None)
    UrllibTransport(http=pool).close()
    assert pool.cleared


def test_retry_policy_follows_redirects_only():
    transport = UrllibTransport(FetchConfig(max_redirects=3))
    retries = transport.retries
    assert retries.redirect == 3
    assert retries.raise_on_redirect is False
    assert (retries.connect, retries.read, retries.status, retries.other) == (0, 0, 0, 0)
    assert transport.http.connection_pool_kw["retries"] is retries


class RedirectHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/r":
            self.send_response(302)
            self.send_header("Location", "/ok")
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        if self.path == "/loop":
            self.send_response(302)
            self.send_header("Location", "/loop")
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        body = b'{"route": "ok"}'
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def redirect_server():
    server = HTTPServer(("127.0.0.1", 0), RedirectHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_fetcher_follows_redirect(redirect_server):
    fetcher = Fetcher()
    try:
        res = asyncio.run(fetcher.get(redirect_server + "/r"))
    finally:
        fetcher.close()
    assert res.ok
    assert res.status_code == 200
    assert res.data == {"route": "ok"}


def test_redirect_limit_returns_last_response(redirect_server):
    fetcher = Fetcher(FetchConfig(max_redirects=2))
    try:
        res = asyncio.run(fetcher.get(redirect_server + "/loop"))
    finally:
        fetcher.close()
    assert res.status_code == 302
    assert isinstance(res.error, InvalidResponseError)
