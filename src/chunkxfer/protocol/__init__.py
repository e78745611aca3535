"""
chunkxfer Protocol Layer
========================

This package defines the transport-agnostic vocabulary of a chunked
transfer: field names, reply statuses, the chunk envelope, the transfer
digest, and the multipart framing used when a message has to cross a
process boundary.

The protocol layer MUST NOT depend on any bus implementation.

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

User Code
    │
    ▼
Producer / Consumer (producer.py, consumer.py)
    The two halves of a transfer
    - make_producer()
    - download()

    │
    ▼
Message Model (message.py)
    - Status (PARTIAL, COMPLETE, ERROR)
    - Chunk
    - digest()

    │
    ▼
Field Vocabulary (fields.py)
    Canonical names for body/option keys
    Prevents string drift across system

---------------------------------------------------------------------

Below the Protocol Layer (for context)
--------------------------------------

Bus Layer
    mount(), send(), request(), uid(), listeners()
    - in-process (bus.local)
    - ZeroMQ (bus.zmq), using the framing in wire.py

---------------------------------------------------------------------
"""

from . import fields
from . import message
from . import wire

from .message import Chunk, Status, digest


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
