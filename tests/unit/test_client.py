"""
Tests for HTTPClient against a scripted loopback server.
"""

import io

import pytest

from httpfetch import download, fetch
from httpfetch.errors import (
    DeadlineExceeded,
    HTTPError,
    IncompleteHeaders,
    MissingLocation,
    TooManyRedirects,
    UnsupportedContentEncoding,
)
from httpfetch.http.body import FramingKind
from httpfetch.sink import FileSink


def redirect(location: str, code: int = 302) -> bytes:
    return (
        f"HTTP/1.1 {code} Found\r\n"
        f"Location: {location}\r\n"
        f"Content-Length: 0\r\n"
        f"\r\n"
    ).encode()


def with_pauses(pieces, pause: float = 0.005):
    """Interleave pieces with short pauses so they arrive as separate reads."""
    steps = []
    for piece in pieces:
        steps.extend([piece, pause])
    return steps


class TestFetchBodies:
    """Successful fetches with each body framing."""

    def test_content_length_body(self, scripted_server, make_client, sample_ok_response):
        """200 with Content-Length: 5 writes exactly the body."""
        scripted_server.enqueue(sample_ok_response)
        out = io.BytesIO()

        result = make_client().fetch(scripted_server.url("/"), out)

        assert out.getvalue() == b"hello"
        assert result.status == 200
        assert result.reason == "OK"
        assert result.framing.kind is FramingKind.FIXED_LENGTH
        assert result.bytes_written == 5
        assert result.complete
        assert result.redirects == 0

    def test_request_on_the_wire(self, scripted_server, make_client, sample_ok_response):
        """The server sees a plain GET with Host and Connection: close."""
        scripted_server.enqueue(sample_ok_response)

        make_client(user_agent="tester/2").fetch(scripted_server.url("/a?b=c"), io.BytesIO())

        request = scripted_server.requests[0]
        assert request.startswith(b"GET /a?b=c HTTP/1.1\r\n")
        assert f"Host: 127.0.0.1:{scripted_server.port}\r\n".encode() in request
        assert b"Connection: close\r\n" in request
        assert b"User-Agent: tester/2\r\n" in request

    def test_chunked_body_in_pieces(self, scripted_server, make_client, split, sample_chunked_response):
        """A chunked body arriving in tiny writes decodes correctly."""
        scripted_server.enqueue(*with_pauses(split(sample_chunked_response, 3)))
        out = io.BytesIO()

        result = make_client().fetch(scripted_server.url("/"), out)

        assert out.getvalue() == b"Wikipedia in\r\n\r\nchunks."
        assert result.framing.kind is FramingKind.CHUNKED
        assert result.complete

    def test_chunked_wins_over_content_length(self, scripted_server, make_client):
        """With both headers present the chunked framing is used."""
        scripted_server.enqueue(
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Length: 2\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"\r\n"
            b"5\r\nhello\r\n0\r\n\r\n"
        )
        out = io.BytesIO()

        result = make_client().fetch(scripted_server.url("/"), out)

        assert out.getvalue() == b"hello"
        assert result.framing.kind is FramingKind.CHUNKED

    def test_read_until_close(self, scripted_server, make_client):
        """No framing headers: the body runs until the server closes."""
        scripted_server.enqueue(b"HTTP/1.0 200 OK\r\n\r\n", b"part one, ", 0.01, b"part two")
        out = io.BytesIO()

        result = make_client().fetch(scripted_server.url("/"), out)

        assert out.getvalue() == b"part one, part two"
        assert result.framing.kind is FramingKind.UNBOUNDED

    def test_head_split_inside_crlf(self, scripted_server, make_client):
        """A CR and its LF arriving in separate reads are still one break."""
        scripted_server.enqueue(
            b"HTTP/1.1 200 OK\r", 0.02,
            b"\nContent-Length: 2\r\n\r", 0.02,
            b"\nok",
        )
        out = io.BytesIO()

        make_client().fetch(scripted_server.url("/"), out)

        assert out.getvalue() == b"ok"

    def test_body_starting_with_crlf_is_kept(self, scripted_server, make_client):
        """Bytes after the empty line belong to the body, line breaks included."""
        scripted_server.enqueue(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\n\r\nabc")
        out = io.BytesIO()

        result = make_client().fetch(scripted_server.url("/"), out)

        assert out.getvalue() == b"\r\nabc"
        assert result.complete

    def test_large_body(self, scripted_server, make_client):
        """Bodies much larger than the buffers stream through."""
        body = bytes(range(256)) * 400
        scripted_server.enqueue(
            f"HTTP/1.1 200 OK\r\nContent-Length: {len(body)}\r\n\r\n".encode() + body
        )
        out = io.BytesIO()

        result = make_client(read_size=1000).fetch(scripted_server.url("/"), out)

        assert out.getvalue() == body
        assert result.bytes_written == len(body)

    def test_short_body_is_not_an_error(self, scripted_server, make_client):
        """Fewer bytes than Content-Length only marks the result incomplete."""
        scripted_server.enqueue(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\nhello")
        out = io.BytesIO()

        result = make_client().fetch(scripted_server.url("/"), out)

        assert out.getvalue() == b"hello"
        assert result.complete is False

    def test_duplicate_headers_merged(self, scripted_server, make_client):
        """Repeated headers are merged in the result's table."""
        scripted_server.enqueue(
            b"HTTP/1.1 200 OK\r\n"
            b"X-A: 1\r\n"
            b"Server: scripted\r\n"
            b"X-A: 2\r\n"
            b"Content-Length: 0\r\n"
            b"\r\n"
        )

        result = make_client().fetch(scripted_server.url("/"), io.BytesIO())

        assert result.headers["x-a"] == "1, 2"
        assert result.headers.get("X-A") == "1, 2"


class TestFetchStatuses:
    """No-content and error statuses."""

    def test_no_content(self, scripted_server, make_client, tmp_path):
        """204 succeeds without creating the output file."""
        scripted_server.enqueue(b"HTTP/1.1 204 No Content\r\n\r\n")
        path = tmp_path / "http.out"

        with FileSink(path) as sink:
            result = make_client().fetch(scripted_server.url("/"), sink)

        assert result.no_content
        assert result.framing is None
        assert not path.exists()

    def test_not_found(self, scripted_server, make_client, tmp_path):
        """404 raises HTTPError and writes nothing."""
        scripted_server.enqueue(b"HTTP/1.1 404 Not Found\r\nContent-Length: 9\r\n\r\nnot found")
        path = tmp_path / "http.out"

        with pytest.raises(HTTPError) as exc_info:
            with FileSink(path) as sink:
                make_client().fetch(scripted_server.url("/"), sink)

        assert exc_info.value.status_code == 404
        assert not path.exists()

    def test_content_encoding_refused(self, scripted_server, make_client):
        scripted_server.enqueue(
            b"HTTP/1.1 200 OK\r\nContent-Encoding: gzip\r\nContent-Length: 3\r\n\r\nabc"
        )

        with pytest.raises(UnsupportedContentEncoding):
            make_client().fetch(scripted_server.url("/"), io.BytesIO())

    def test_server_closes_mid_head(self, scripted_server, make_client):
        scripted_server.enqueue(b"HTTP/1.1 200 OK\r\nContent-Le")

        with pytest.raises(IncompleteHeaders):
            make_client().fetch(scripted_server.url("/"), io.BytesIO())


class TestRedirects:
    """Redirect following and its depth limit."""

    def chain(self, server, hops: int) -> str:
        """/r0 → /r1 → ... → /r{hops} which answers 200."""
        for i in range(hops):
            server.route(f"/r{i}", redirect(f"/r{i + 1}"))
        server.route(f"/r{hops}", b"HTTP/1.1 200 OK\r\nContent-Length: 4\r\n\r\ndone")
        return server.url("/r0")

    def test_follows_redirect(self, scripted_server, make_client):
        """A single redirect is followed to the final body."""
        url = self.chain(scripted_server, 1)
        out = io.BytesIO()

        result = make_client().fetch(url, out)

        assert out.getvalue() == b"done"
        assert result.redirects == 1
        assert result.url == scripted_server.url("/r1")

    def test_depth_at_limit_succeeds(self, scripted_server, make_client):
        """Exactly max_redirects redirects are allowed."""
        url = self.chain(scripted_server, 3)

        result = make_client(max_redirects=3).fetch(url, io.BytesIO())

        assert result.redirects == 3
        assert len(scripted_server.requests) == 4

    def test_depth_over_limit_fails(self, scripted_server, make_client, tmp_path):
        """One redirect more than allowed fails before the final hop."""
        url = self.chain(scripted_server, 4)
        path = tmp_path / "http.out"

        with pytest.raises(TooManyRedirects) as exc_info:
            with FileSink(path) as sink:
                make_client(max_redirects=3).fetch(url, sink)

        assert exc_info.value.exit_code == 6
        assert len(scripted_server.requests) == 4
        assert not path.exists()

    def test_zero_redirects_allowed(self, scripted_server, make_client):
        url = self.chain(scripted_server, 1)

        with pytest.raises(TooManyRedirects):
            make_client(max_redirects=0).fetch(url, io.BytesIO())

    def test_absolute_location(self, scripted_server, make_client):
        """Absolute Location values are used as given."""
        scripted_server.route("/start", redirect(scripted_server.url("/end"), code=301))
        scripted_server.route("/end", b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nok")
        out = io.BytesIO()

        make_client().fetch(scripted_server.url("/start"), out)

        assert out.getvalue() == b"ok"

    def test_missing_location(self, scripted_server, make_client):
        scripted_server.enqueue(b"HTTP/1.1 302 Found\r\nContent-Length: 0\r\n\r\n")

        with pytest.raises(MissingLocation):
            make_client().fetch(scripted_server.url("/"), io.BytesIO())


class TestDeadline:
    """One deadline for the whole fetch."""

    def test_silent_server(self, scripted_server, make_client):
        """A server that stalls mid-head runs into the deadline."""
        scripted_server.enqueue(b"HTTP/1.1 200 OK\r\n", 1.5)

        with pytest.raises(DeadlineExceeded):
            make_client(timeout=0.3).fetch(scripted_server.url("/"), io.BytesIO())

    def test_stalled_body(self, scripted_server, make_client):
        """The deadline also covers the body phase."""
        scripted_server.enqueue(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\nhel", 1.5)

        with pytest.raises(DeadlineExceeded):
            make_client(timeout=0.3).fetch(scripted_server.url("/"), io.BytesIO())

    def test_shared_across_redirects(self, scripted_server, make_client):
        """Two hops that each fit the timeout still fail together."""
        scripted_server.route("/slow1", 0.4, redirect("/slow2"))
        scripted_server.route("/slow2", 0.4, b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")

        with pytest.raises(DeadlineExceeded):
            make_client(timeout=0.6).fetch(scripted_server.url("/slow1"), io.BytesIO())


class TestHelpers:
    """Module-level fetch() and download()."""

    def test_fetch_function(self, scripted_server, config, sample_ok_response):
        scripted_server.enqueue(sample_ok_response)
        out = io.BytesIO()

        result = fetch(scripted_server.url("/"), out, config)

        assert out.getvalue() == b"hello"
        assert result.status == 200

    def test_download(self, scripted_server, config, sample_ok_response, tmp_path):
        scripted_server.enqueue(sample_ok_response)
        path = tmp_path / "page.txt"

        result = download(scripted_server.url("/"), str(path), config)

        assert path.read_bytes() == b"hello"
        assert result.bytes_written == 5
