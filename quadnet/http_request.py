"""Non-blocking HTTP requests, polled for completion."""

from __future__ import annotations

import copy
import enum
import http.client
import queue
import threading
import urllib.error
import urllib.request

from .errors import NetError

_CONNECT_TIMEOUT = 30.0


class Method(enum.Enum):
    """HTTP request method."""

    POST = "POST"
    PUT = "PUT"
    GET = "GET"
    DELETE = "DELETE"


class HttpError(NetError):
    """An HTTP request failed or its response could not be read."""


class Request:
    """A request in flight; poll :meth:`try_recv` for its outcome."""

    def __init__(self, results: queue.Queue) -> None:
        self._results = results

    def try_recv(self) -> str | None:
        """Return the response body once available, else ``None``.

        Raises :class:`HttpError` if the request failed. The outcome is
        delivered once; later calls return ``None``.
        """
        try:
            outcome = self._results.get_nowait()
        except queue.Empty:
            return None
        if isinstance(outcome, HttpError):
            raise outcome
        return outcome


class RequestBuilder:
    """Builds a request; every modifier returns a new builder."""

    __slots__ = ("_url", "_method", "_headers", "_body")

    def __init__(self, url: str) -> None:
        self._url = url
        self._method = Method.GET
        self._headers: tuple[tuple[str, str], ...] = ()
        self._body: str | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def http_method(self) -> Method:
        return self._method

    @property
    def headers(self) -> tuple[tuple[str, str], ...]:
        return self._headers

    @property
    def body_text(self) -> str | None:
        return self._body

    def _replace(self, **changes) -> RequestBuilder:
        clone = copy.copy(self)
        for name, value in changes.items():
            setattr(clone, f"_{name}", value)
        return clone

    def method(self, method: Method | str) -> RequestBuilder:
        """Use ``method`` for the request."""
        return self._replace(method=Method(method))

    def header(self, header: str, value: str) -> RequestBuilder:
        """Add a header to the request."""
        return self._replace(headers=self._headers + ((header, value),))

    def body(self, body: str) -> RequestBuilder:
        """Send ``body`` as the request payload."""
        return self._replace(body=body)

    def send(self) -> Request:
        """Start the request on a background thread."""
        results: queue.Queue = queue.Queue(maxsize=1)
        worker = threading.Thread(target=self._perform, args=(results,), daemon=True)
        worker.start()
        return Request(results)

    def _perform(self, results: queue.Queue) -> None:
        try:
            results.put(self._fetch())
        except HttpError as exc:
            results.put(exc)
        except Exception as exc:  # keep the poller from waiting forever
            results.put(HttpError(f"request failed: {exc}"))

    def _fetch(self) -> str:
        headers = dict(self._headers)
        data = None
        if self._body is not None:
            data = self._body.encode("utf-8")
            if not any(name.lower() == "content-type" for name in headers):
                headers["Content-Type"] = "text/plain; charset=utf-8"

        try:
            request = urllib.request.Request(
                self._url, data=data, headers=headers, method=self._method.value
            )
            with urllib.request.urlopen(request, timeout=_CONNECT_TIMEOUT) as response:
                raw = response.read()
                charset = response.headers.get_content_charset() or "utf-8"
        except urllib.error.HTTPError as exc:
            raise HttpError(f"request failed: status {exc.code} {exc.reason}") from exc
        except (OSError, ValueError, http.client.HTTPException) as exc:
            raise HttpError(f"request failed: {exc}") from exc

        try:
            return raw.decode(charset)
        except (UnicodeDecodeError, LookupError) as exc:
            raise HttpError(f"IOError: {exc}") from exc