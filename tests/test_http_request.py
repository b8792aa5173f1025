import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from quadnet.errors import NetError
from quadnet.http_request import HttpError, Method, RequestBuilder


class EchoHandler(BaseHTTPRequestHandler):
    def _echo(self):
        if self.path == "/missing":
            self.send_error(404)
            return
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length).decode("utf-8")
        tag = self.headers.get("X-Tag", "")
        text = f"{self.command}|{self.path}|{tag}|{body}"
        payload = text.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    do_GET = do_POST = do_PUT = do_DELETE = _echo

    def log_message(self, format, *args):
        pass


@pytest.fixture
def base_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()


def wait_for(request, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = request.try_recv()
        if result is not None:
            return result
        time.sleep(0.01)
    raise AssertionError("request did not complete in time")


def test_get_returns_body(base_url):
    result = wait_for(RequestBuilder(base_url + "/hello").send())
    assert result == f"{Method.GET.value}|/hello||"


@pytest.mark.parametrize("method", [Method.POST, Method.PUT, Method.DELETE])
def test_methods_with_body(base_url, method):
    request = RequestBuilder(base_url + "/data").method(method).body("payload").send()
    assert wait_for(request) == f"{method.value}|/data||payload"


def test_header_is_sent(base_url):
    request = RequestBuilder(base_url + "/h").header("X-Tag", "marker").send()
    assert wait_for(request) == f"{Method.GET.value}|/h|marker|"


def test_outcome_delivered_once(base_url):
    request = RequestBuilder(base_url + "/once").send()
    wait_for(request)
    assert request.try_recv() is None


def test_error_status_raises(base_url):
    request = RequestBuilder(base_url + "/missing").send()
    with pytest.raises(HttpError):
        wait_for(request)
    assert request.try_recv() is None


def test_unreachable_host_raises_net_error():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    request = RequestBuilder(f"http://127.0.0.1:{port}/").send()
    with pytest.raises(NetError):
        wait_for(request)
    assert request.try_recv() is None


def test_invalid_url_raises():
    request = RequestBuilder("not a url").send()
    with pytest.raises(HttpError):
        wait_for(request)
    assert request.try_recv() is None


def test_builder_defaults():
    builder = RequestBuilder("http://localhost/")
    assert builder.http_method is Method.GET
    assert builder.headers == ()
    assert builder.body_text is None


def test_builder_modifiers_do_not_mutate_original():
    original = RequestBuilder("http://localhost/")
    changed = original.method(Method.POST).header("A", "1").header("B", "2").body("x")
    assert original.http_method is Method.GET
    assert original.headers == ()
    assert original.body_text is None
    assert changed.http_method is Method.POST
    assert changed.headers == (("A", "1"), ("B", "2"))
    assert changed.body_text == "x"
    assert changed.url == original.url


def test_method_accepts_name():
    assert RequestBuilder("http://localhost/").method("PUT").http_method is Method.PUT


def test_method_rejects_unknown_name():
    with pytest.raises(ValueError):
        RequestBuilder("http://localhost/").method("FETCH")