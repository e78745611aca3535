"""ZeroMQ message bus.

A :class:`Bus` here is an in-process bus that can also exchange messages
with other processes. Each bus listens on a ROUTER socket, and holds one
DEALER socket per named peer it has connected to:

    bus.connect('archive', 'archive.example.com', 10080)
    bus.send('archive/master', reply_address, body)

An address of the form ``name/rest`` is forwarded to peer ``name`` and
delivered there to address ``rest``. The return address of an inbound
message is rewritten so that :meth:`Context.reply` finds its way back over
the same connection: ``@<identity>/<address>`` on the listening side,
``<name>/<address>`` on the connecting side. Messages over one connection
are delivered in the order they were sent.
"""

from __future__ import annotations

import itertools
import logging
import queue
import socket as pysocket
import threading
from typing import Any, Dict, Optional, Tuple

import zmq

from ..protocol import wire
from .base import BusConnectionError, BusPortError
from .local import Bus as LocalBus, Context

logger = logging.getLogger(__name__)

minimum_port = 10079
maximum_port = 13679
zmq_context = zmq.Context()

_endpoint_ids = itertools.count()


class _Endpoint:
    """Owns one ZeroMQ socket and the background thread that services it.

    ZeroMQ sockets are not thread-safe; every operation on the primary
    socket happens in the background thread. Other threads hand over
    outbound frames through a queue, and wake the background thread with
    an inproc PAIR signal.
    """

    kind = "endpoint"

    def __init__(self, bus: "Bus", socket_type: int):
        self.bus = bus
        self.shutdown = False

        self.socket = zmq_context.socket(socket_type)
        self.socket.setsockopt(zmq.LINGER, 0)

        self._outbox = queue.SimpleQueue()

        internal = f"inproc://chunkxfer.bus.{self.kind}.{next(_endpoint_ids)}"
        self._signal_rx = zmq_context.socket(zmq.PAIR)
        self._signal_rx.bind(internal)
        self._signal_tx = zmq_context.socket(zmq.PAIR)
        self._signal_tx.connect(internal)
        self._signal_lock = threading.Lock()

    def start(self) -> None:
        self.thread = threading.Thread(target=self.run, daemon=True,
                                       name=f"chunkxfer.bus.{self.kind}")
        self.thread.start()

    def send_frames(self, frames: Optional[Tuple[bytes, ...]]) -> None:
        if self.shutdown:
            raise BusConnectionError(f"{self.kind} is closed")

        self._outbox.put(frames)
        with self._signal_lock:
            self._signal_tx.send(b"")

    def close(self) -> None:
        if self.shutdown:
            return

        # A None in the outbox tells the background thread to exit once
        # everything queued ahead of it has been sent.
        self._outbox.put(None)
        with self._signal_lock:
            self._signal_tx.send(b"")
        self.shutdown = True
        self.thread.join(timeout=5)

    def _outgoing(self) -> bool:
        # Clear one signal and send one message.
        self._signal_rx.recv(flags=zmq.NOBLOCK)
        frames = self._outbox.get(block=False)

        if frames is None:
            return False

        self.socket.send_multipart(frames)
        return True

    def _incoming(self, parts) -> None:
        raise NotImplementedError

    def run(self) -> None:
        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)
        poller.register(self._signal_rx, zmq.POLLIN)

        running = True
        while running:
            for active, _flag in poller.poll(10000):
                if active == self._signal_rx:
                    running = self._outgoing()
                    if not running:
                        break
                elif active == self.socket:
                    parts = tuple(self.socket.recv_multipart())
                    try:
                        self._incoming(parts)
                    except wire.FramingError as exc:
                        logger.warning(f"Discarding malformed message on {self.kind}: {exc}")

        self.socket.close()
        self._signal_rx.close()
        with self._signal_lock:
            self._signal_tx.close()


class Server(_Endpoint):
    """Receive messages via a ZeroMQ ROUTER socket.

    The default behavior is to listen on every interface, on the first
    available port in the default range. The *avoid* set enumerates port
    numbers that should not be automatically assigned; this is ignored if a
    fixed *port* is specified.
    """

    kind = "server"

    def __init__(self, bus: "Bus", hostname: Optional[str] = None,
                 port: Optional[int] = None, avoid: Optional[set] = None):
        _Endpoint.__init__(self, bus, zmq.ROUTER)

        # The hostname is recorded for peers to connect to, but not used;
        # the socket listens on every available interface.
        self.hostname = hostname or pysocket.getfqdn()
        self.avoid = set(avoid or ())

        if port is None:
            self.port = self._bind_any()
        else:
            self.port = int(port)
            try:
                self.socket.bind(f"tcp://*:{self.port}")
            except zmq.ZMQError as exc:
                raise BusPortError(f"port already in use: {self.port}") from exc

        self.start()

    def _bind_any(self) -> int:
        for port in range(minimum_port, maximum_port + 1):
            if port in self.avoid:
                continue
            try:
                self.socket.bind(f"tcp://*:{port}")
                return port
            except zmq.ZMQError:
                continue
        raise BusPortError(
            f"no ports available in range {minimum_port}:{maximum_port}"
        )

    def send(self, identity: bytes, to: str, frm: Optional[str], body: Any,
             options: Optional[dict]) -> None:
        self.send_frames(wire.to_frames(to, frm, body, options, prefix=(identity,)))

    def _incoming(self, parts) -> None:
        prefix, to, frm, body, options = wire.from_frames(parts)
        if not prefix:
            raise wire.FramingError("ROUTER message without an identity frame")

        if frm is not None:
            frm = "@" + prefix[0].hex() + "/" + frm

        self.bus.deliver(Context(self.bus, to, frm, body, options))


class Client(_Endpoint):
    """Exchange messages with one remote bus via a ZeroMQ DEALER socket."""

    kind = "client"

    def __init__(self, bus: "Bus", name: str, address: str, port: int):
        _Endpoint.__init__(self, bus, zmq.DEALER)

        self.name = name
        self.address = address
        self.port = int(port)

        self.socket.connect(f"tcp://{address}:{self.port}")
        self.start()

    def send(self, to: str, frm: Optional[str], body: Any,
             options: Optional[dict]) -> None:
        self.send_frames(wire.to_frames(to, frm, body, options))

    def _incoming(self, parts) -> None:
        _prefix, to, frm, body, options = wire.from_frames(parts)

        if frm is not None:
            frm = self.name + "/" + frm

        self.bus.deliver(Context(self.bus, to, frm, body, options))


class Bus(LocalBus):
    """A local bus reachable from, and able to reach, other processes."""

    def __init__(self, hostname: Optional[str] = None, port: Optional[int] = None,
                 avoid: Optional[set] = None):
        LocalBus.__init__(self)

        self.server = Server(self, hostname, port, avoid)
        self.hostname = self.server.hostname
        self.port = self.server.port

        self.peers: Dict[str, Client] = {}
        self.peers_lock = threading.Lock()

    def connect(self, name: str, address: str, port: int) -> Client:
        """Connect to the bus listening at *address*:*port*, reachable from
        here as addresses prefixed with ``name/``."""

        if not name or "/" in name or name.startswith("@"):
            raise ValueError(f"invalid peer name: {name!r}")

        client = Client(self, name, address, port)

        with self.peers_lock:
            previous = self.peers.get(name)
            self.peers[name] = client

        if previous is not None:
            previous.close()

        logger.info(f"Connected peer {name!r} at {address}:{port}")
        return client

    def disconnect(self, name: str) -> bool:
        with self.peers_lock:
            client = self.peers.pop(name, None)

        if client is None:
            return False

        client.close()
        return True

    def send(self, to: str, frm: Optional[str] = None, body: Any = None,
             options: Optional[dict] = None) -> None:
        route, separator, remainder = to.partition("/")

        if separator and route.startswith("@"):
            try:
                identity = bytes.fromhex(route[1:])
            except ValueError:
                raise BusConnectionError(f"invalid return route: {to!r}")
            self.server.send(identity, remainder, frm, body, options)
            return

        if separator:
            with self.peers_lock:
                client = self.peers.get(route)
            if client is not None:
                client.send(remainder, frm, body, options)
                return

        LocalBus.send(self, to, frm, body, options)

    def close(self) -> None:
        LocalBus.close(self)

        with self.peers_lock:
            peers = list(self.peers.values())
            self.peers.clear()

        for client in peers:
            client.close()

        self.server.close()
