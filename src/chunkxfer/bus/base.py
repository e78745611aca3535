"""Bus interface.

This is the (small) contract that message bus implementations follow. The
producer and consumer only ever talk to a bus through these methods, so the
protocol remains independent of how messages actually move.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Callable, List, Optional


# Bus agnostic exceptions

class BusError(Exception):
    """Base class for all bus-level errors."""


class BusConnectionError(BusError):
    """The bus could not establish or maintain a connection to a peer."""


class BusPortError(BusError):
    """No suitable port could be bound or connected."""


Handler = Callable[[Any], None]


class Bus(ABC):
    """Minimal contract for an address-based request/reply message bus."""

    @abstractmethod
    def mount(self, address: str, handler: Handler, workers: int = 1) -> None:
        """Invoke *handler* once per message addressed to *address*."""

    @abstractmethod
    def unmount(self, address: str) -> bool:
        """Stop delivering messages to *address*; return whether it was mounted."""

    @abstractmethod
    def send(self, to: str, frm: Optional[str] = None, body: Any = None,
             options: Optional[dict] = None) -> None:
        """Deliver a message to *to*; replies go to *frm*."""

    @abstractmethod
    def request(self, to: str, body: Any = None,
                options: Optional[dict] = None) -> Future:
        """Send a message and return a Future for the first reply."""

    @abstractmethod
    def uid(self) -> str:
        """Return a fresh, collision-free address for reply correlation."""

    @abstractmethod
    def listeners(self, pattern: str = "*") -> List[str]:
        """Return the mounted addresses matching *pattern*."""

    def close(self) -> None:
        """Release any resources held by the bus."""

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
