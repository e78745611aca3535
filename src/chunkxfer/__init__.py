""" Python implementation of a chunked content-transfer protocol. A producer
    mounted on a message bus answers each request by emitting the requested
    buffer as an ordered series of chunk replies; a consumer reassembles the
    chunks, verifying the transfer hash and length, and gives up after a
    configurable period of inactivity.
"""

# Utility components.

from . import json
from . import errors
from . import config

# Submodules used by multiple other components.

from . import protocol
from . import bus
digest = protocol.digest

# Primary public-facing interfaces.

from . import producer
from . import consumer

from .producer import Producer, make_producer
from .consumer import Transfer, download
from .errors import (
    ErrorKind,
    TransferError,
    ConfigurationError,
    FetchError,
    ProtocolError,
    DeliveryError,
    TransferTimeout,
    TransferCancelled,
)

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
