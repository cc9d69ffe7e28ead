"""Integration tests for the UDP server and client over loopback sockets."""

import socket
import threading
import time

import pytest

from netpipe.exceptions import AlreadyConnectedError, InvalidArgumentError, NotConnectedError
from netpipe.udp import Client, Packet, Server, ServerOptions, build_options


def echo(packet: Packet) -> None:
    packet.reply(packet.data)


@pytest.fixture
def server():
    server = Server()
    yield server
    server.stop()


def address_of(server: Server) -> str:
    return f"127.0.0.1:{server.address[1]}"


def round_trip(address: str, payload: bytes, timeout: float = 2.0) -> bytes:
    with Client() as client:
        client.connect("udp", address)
        client.send(payload)
        data, _ = client.receive(2048, timeout=timeout)
        return data


class TestUDPServerLifecycle:
    """Tests for start/stop behavior."""

    def test_echo(self, server):
        server.start("udp", "127.0.0.1:0", 2048, echo)
        assert server.running

        assert round_trip(address_of(server), b"ping") == b"ping"

    def test_stop_is_idempotent(self, server):
        server.stop()
        server.start("udp4", "127.0.0.1:0", 2048, echo)
        server.stop()
        server.stop()

        assert not server.running
        assert server.address is None

    def test_start_while_running_restarts(self, server):
        server.start("udp", "127.0.0.1:0", 2048, echo)
        server.start("udp", "127.0.0.1:0", 2048, echo)

        assert server.running
        assert round_trip(address_of(server), b"second") == b"second"

    @pytest.mark.parametrize("network,address,size,handler", [
        ("", "127.0.0.1:0", 2048, echo),
        ("udp", "", 2048, echo),
        ("tcp", "127.0.0.1:0", 2048, echo),
        ("udp", "127.0.0.1:0", 0, echo),
        ("udp", "127.0.0.1:0", 2048, None),
    ])
    def test_invalid_arguments(self, server, network, address, size, handler):
        with pytest.raises(InvalidArgumentError):
            server.start(network, address, size, handler)
        assert not server.running

    def test_stop_does_not_report_failure(self, server):
        failures = []
        server.start("udp", "127.0.0.1:0", 2048, echo, on_failure=failures.append)
        time.sleep(0.3)
        server.stop()

        assert failures == []

    def test_truncates_to_recv_buffer_size(self, server):
        server.start("udp", "127.0.0.1:0", 4, echo)

        assert round_trip(address_of(server), b"abcdefgh") == b"abcd"

    def test_reply_endpoint_address(self, server):
        seen = []
        done = threading.Event()

        def handle(packet):
            seen.append(packet.endpoint.local_address)
            done.set()

        server.start("udp", "127.0.0.1:0", 2048, handle)
        with Client() as client:
            client.connect("udp", address_of(server))
            client.send(b"x")
            assert done.wait(5.0)

        assert seen == [server.address]


class TestUDPServerModes:
    """Tests for sync and async handler dispatch."""

    def test_many_clients(self, server):
        server.start("udp", "127.0.0.1:0", 1024, echo)
        address = address_of(server)
        results = {}

        def run(n):
            token = f"{n:08d}".encode()
            results[n] = round_trip(address, token, timeout=1.0) == token

        threads = [threading.Thread(target=run, args=(n,)) for n in range(100)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10.0)

        assert results == {n: True for n in range(100)}

    def test_sync_mode_runs_on_receive_thread(self, server):
        threads = []

        def handle(packet):
            threads.append(threading.current_thread().name)
            packet.reply(packet.data)

        server.start("udp", "127.0.0.1:0", 2048, handle, async_mode=False)
        address = address_of(server)

        for n in range(3):
            assert round_trip(address, b"sync") == b"sync"

        assert len(set(threads)) == 1
        assert threads[0].startswith("udp-receive")

    def test_async_mode_uses_handler_threads(self, server):
        threads = []

        def handle(packet):
            threads.append(threading.current_thread().name)
            packet.reply(packet.data)

        server.start("udp", "127.0.0.1:0", 2048, handle, async_mode=True)
        assert round_trip(address_of(server), b"async") == b"async"

        assert not threads[0].startswith("udp-receive")

    def test_sync_handler_error_keeps_loop_alive(self, server):
        def handle(packet):
            if packet.data == b"bad":
                raise ValueError("rejected")
            packet.reply(packet.data)

        server.start("udp", "127.0.0.1:0", 2048, handle, async_mode=False)
        address = address_of(server)

        with Client() as client:
            client.connect("udp", address)
            client.send(b"bad")
            client.send(b"good")
            data, _ = client.receive(64, timeout=2.0)

        assert data == b"good"

    def test_max_concurrent(self):
        server = Server()
        active = 0
        peak = 0
        handled = []
        lock = threading.Lock()

        def handle(packet):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.1)
            with lock:
                active -= 1
                handled.append(packet.data)

        server.start(
            "udp", "127.0.0.1:0", 2048, handle,
            options=ServerOptions(max_concurrent=2),
        )
        try:
            with Client() as client:
                client.connect("udp", address_of(server))
                for n in range(6):
                    client.send(str(n).encode())

                deadline = time.monotonic() + 5.0
                while len(handled) < 6 and time.monotonic() < deadline:
                    time.sleep(0.01)
        finally:
            server.stop()

        assert len(handled) == 6
        assert peak <= 2

    def test_stop_is_bounded_by_shutdown_wait(self):
        server = Server()
        release = threading.Event()
        entered = threading.Event()

        def stuck(packet):
            entered.set()
            release.wait(10.0)

        server.start(
            "udp", "127.0.0.1:0", 2048, stuck,
            options=build_options(shutdown_wait=0.3),
        )
        try:
            with Client() as client:
                client.connect("udp", address_of(server))
                client.send(b"hang")
                assert entered.wait(5.0)

            start = time.monotonic()
            server.stop()
            elapsed = time.monotonic() - start

            assert elapsed < 2.0
            assert server.in_flight == 1
        finally:
            release.set()

    def test_sync_stop_past_deadline_then_restart(self):
        server = Server()
        release = threading.Event()
        entered = threading.Event()
        failures = []

        def stuck(packet):
            entered.set()
            release.wait(10.0)

        server.start(
            "udp", "127.0.0.1:0", 2048, stuck,
            async_mode=False,
            on_failure=failures.append,
            options=build_options(shutdown_wait=0.3),
        )
        old_thread = f"udp-receive-{address_of(server)}"
        try:
            with Client() as client:
                client.connect("udp", address_of(server))
                client.send(b"hang")
                assert entered.wait(5.0)

            start = time.monotonic()
            server.stop()
            assert time.monotonic() - start < 2.0

            server.start("udp", "127.0.0.1:0", 2048, echo, async_mode=False)
            release.set()
            time.sleep(0.5)

            assert failures == []
            names = [thread.name for thread in threading.enumerate()]
            assert names.count(old_thread) == int(old_thread == f"udp-receive-{address_of(server)}")
            assert round_trip(address_of(server), b"after restart") == b"after restart"
        finally:
            release.set()
            server.stop()

    def test_invalid_options(self):
        with pytest.raises(InvalidArgumentError):
            build_options(max_concurrent=0)
        with pytest.raises(InvalidArgumentError):
            build_options(shutdown_wait=-1)


class TestUDPClient:
    """Tests for the UDP client."""

    def test_operations_before_connect(self):
        client = Client()
        with pytest.raises(NotConnectedError, match="please call connect first"):
            client.send(b"x")
        with pytest.raises(NotConnectedError):
            client.receive(16)
        assert client.local_address is None

    def test_connect_twice(self, server):
        server.start("udp", "127.0.0.1:0", 2048, echo)

        with Client() as client:
            client.connect("udp", address_of(server))
            with pytest.raises(AlreadyConnectedError):
                client.connect("udp", address_of(server))
            assert client.remote_address == server.address

    def test_bad_network(self):
        with pytest.raises(InvalidArgumentError):
            Client().connect("tcp", "127.0.0.1:1")

    def test_receive_timeout(self, free_port):
        with Client() as client:
            client.connect("udp", f"127.0.0.1:{free_port}")
            with pytest.raises(socket.timeout):
                client.receive(16, timeout=0.2)

    def test_receive_rejects_non_positive_size(self, server):
        server.start("udp", "127.0.0.1:0", 2048, echo)

        with Client() as client:
            client.connect("udp", address_of(server))
            with pytest.raises(InvalidArgumentError):
                client.receive(0)

    def test_send_to_other_peer(self, server):
        server.start("udp", "127.0.0.1:0", 2048, echo)

        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as peer:
            peer.bind(("127.0.0.1", 0))
            peer.settimeout(2.0)

            with Client() as client:
                client.connect("udp", address_of(server))
                assert client.send_to(b"aside", f"127.0.0.1:{peer.getsockname()[1]}") == 5

            data, _ = peer.recvfrom(64)
            assert data == b"aside"

    def test_buffer_setters(self, server):
        server.start("udp", "127.0.0.1:0", 2048, echo)

        with Client() as client:
            client.connect("udp", address_of(server))
            client.set_read_buffer(65536)
            client.set_write_buffer(65536)
            client.send(b"buffered")
            data, _ = client.receive(64, timeout=2.0)

        assert data == b"buffered"

    def test_close_is_idempotent(self):
        client = Client()
        client.connect("udp", "127.0.0.1:9")
        client.close()
        client.close()
        assert not client.connected
