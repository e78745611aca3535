""" Message bus implementations. The in-process bus is always available; the
    ZeroMQ bus is imported on demand, so that pyzmq is only loaded when a
    transfer actually needs to cross a process boundary.
"""

from .base import (
    Bus,
    BusError,
    BusConnectionError,
    BusPortError,
)

from . import local
from .local import Context


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
