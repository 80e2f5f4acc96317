"""
Unit tests for Connection reading and the isolation runners.
"""

import os
import socket
import threading
import time

import pytest

from formserver.core import Connection, ConnectionState, ThreadPool, ProcessRunner
from formserver.exceptions import ReadFailure


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for s in (server_side, client_side):
        try:
            s.close()
        except OSError:
            pass


def make_connection(sock, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 1.0)
    return Connection(socket=sock, address=("127.0.0.1", 40000), **kwargs)


class TestConnection:
    """Tests for Connection.read_head / read_body."""

    def test_head_split_across_recvs(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, buffer_size=4)

        client_side.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        assert conn.read_head() == b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"

    def test_body_after_head_is_kept(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello")
        conn.read_head()

        assert conn.read_body(5) == b"hello"

    def test_body_with_content_length_stops_there(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"POST / HTTP/1.1\r\n\r\nabcdefgh")
        conn.read_head()

        assert conn.read_body(3) == b"abc"

    def test_body_until_eof(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"POST / HTTP/1.1\r\n\r\ntitle=a&content=b")
        client_side.shutdown(socket.SHUT_WR)
        conn.read_head()

        assert conn.read_body() == b"title=a&content=b"

    def test_body_until_quiet(self, socket_pair):
        """Without Content-Length or EOF, the body ends after one timeout."""
        server_side, client_side = socket_pair
        conn = make_connection(server_side, timeout=0.2)

        client_side.sendall(b"POST / HTTP/1.1\r\n\r\ntitle=a&content=b")
        conn.read_head()

        assert conn.read_body() == b"title=a&content=b"

    def test_early_close_gives_partial_body(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"POST / HTTP/1.1\r\n\r\nabc")
        client_side.shutdown(socket.SHUT_WR)
        conn.read_head()

        assert conn.read_body(10) == b"abc"

    def test_eof_before_terminator(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(b"GET / HTTP/1.1\r\n")
        client_side.shutdown(socket.SHUT_WR)

        with pytest.raises(ReadFailure):
            conn.read_head()

    def test_timeout_before_terminator(self, socket_pair):
        server_side, _ = socket_pair
        conn = make_connection(server_side, timeout=0.1)

        with pytest.raises(ReadFailure):
            conn.read_head()

    def test_oversize_head(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, max_request_size=64)

        client_side.sendall(b"GET /" + b"a" * 200)

        with pytest.raises(ReadFailure):
            conn.read_head()

    def test_context_manager_closes(self, socket_pair):
        server_side, client_side = socket_pair

        with make_connection(server_side) as conn:
            conn.send_response(b"bye")

        assert conn.state == ConnectionState.CLOSED
        assert client_side.recv(16) == b"bye"
        assert client_side.recv(16) == b""

    def test_sample_post_through_connection(self, socket_pair, sample_post_request):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        client_side.sendall(sample_post_request)
        head = conn.read_head()

        assert b"Content-Length: 39\r\n" in head
        assert conn.read_body(39) == b"title=Hello+World&content=It%20works%21"

    def test_reject_sends_and_closes(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side)

        conn.reject(b"HTTP/1.1 503 Service Unavailable\r\n\r\n")

        assert conn.state == ConnectionState.CLOSED
        assert client_side.recv(64) == b"HTTP/1.1 503 Service Unavailable\r\n\r\n"
        assert client_side.recv(64) == b""

    def test_reject_does_not_wait_on_a_quiet_client(self, socket_pair):
        server_side, client_side = socket_pair
        conn = make_connection(server_side, timeout=5.0)
        client_side.sendall(b"GET / HT")

        start = time.monotonic()
        conn.reject(b"503")

        assert time.monotonic() - start < 0.5
        assert client_side.recv(16) == b"503"


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_runs_jobs(self):
        pool = ThreadPool(min_workers=2, max_workers=2)
        pool.start()
        done = threading.Event()

        assert pool.submit(done.set) is True
        assert done.wait(2.0)
        pool.shutdown(wait=True, timeout=2.0)

    def test_job_exception_is_contained(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        done = threading.Event()

        def boom():
            raise RuntimeError("boom")

        pool.submit(boom)
        pool.submit(done.set)

        assert done.wait(2.0)
        assert pool.stats["failed"] == 1
        pool.shutdown(wait=True, timeout=2.0)

    def test_full_queue_rejects(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait(5.0)

        pool.submit(block)
        assert started.wait(2.0)
        assert pool.submit(block) is True   # Fills the queue
        assert pool.submit(block) is False  # Overloaded

        release.set()
        pool.shutdown(wait=True, timeout=5.0)

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(print)


@pytest.mark.skipif(not hasattr(os, "fork"), reason="needs os.fork")
@pytest.mark.filterwarnings("ignore::DeprecationWarning")
class TestProcessRunner:
    """Tests for ProcessRunner."""

    def test_child_runs_and_is_reaped(self, tmp_path):
        marker = tmp_path / "ran"
        runner = ProcessRunner(max_children=2)
        runner.start()

        assert runner.submit(marker.write_text, args=("child",)) is True
        runner.shutdown(wait=True, timeout=5.0)

        assert marker.read_text() == "child"
        assert runner.active_children == 0
        assert runner.children_failed == 0

    def test_failed_child_is_counted(self):
        runner = ProcessRunner(max_children=2)
        runner.start()

        def boom():
            raise RuntimeError("boom")

        runner.submit(boom)
        runner.shutdown(wait=True, timeout=5.0)

        assert runner.children_failed == 1

    def test_interrupted_child_is_counted(self):
        runner = ProcessRunner(max_children=2)
        runner.start()

        def interrupted():
            raise KeyboardInterrupt

        runner.submit(interrupted)
        runner.shutdown(wait=True, timeout=5.0)

        assert runner.children_failed == 1

    def test_in_child_hook_runs_first(self, tmp_path):
        order = tmp_path / "order"
        runner = ProcessRunner(
            max_children=1,
            in_child=lambda: order.write_text("hook;"),
        )
        runner.start()

        def job():
            with open(order, "a") as f:
                f.write("job")

        runner.submit(job)
        runner.shutdown(wait=True, timeout=5.0)

        assert order.read_text() == "hook;job"

    def test_at_capacity_rejects(self):
        runner = ProcessRunner(max_children=1)
        runner.start()

        assert runner.submit(time.sleep, args=(1.0,)) is True
        assert runner.submit(time.sleep, args=(1.0,)) is False

        runner.shutdown(wait=True, timeout=5.0)
        assert runner.active_children == 0
