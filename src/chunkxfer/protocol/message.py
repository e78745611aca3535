""" Value types shared by both ends of a chunked transfer: the closed set of
    reply statuses, the chunk envelope, and the digest used to tie the chunks
    of one transfer together.
"""

import enum
import hashlib

from .. import errors
from . import fields


class Status(enum.Enum):
    """ The status of a single reply. The value of each member is the
        transport code it is mapped to on the wire; use :func:`code` and
        :func:`from_code` at the boundary rather than comparing codes
        directly.
    """

    PARTIAL = 206
    COMPLETE = 200
    ERROR = 500

    @property
    def code(self):
        return self.value


    @classmethod
    def from_code(cls, code):
        """ Translate a transport status code into a :class:`Status` member.
            Codes arrive as integers or as their string representation,
            depending on the peer; anything else raises
            :class:`chunkxfer.errors.ProtocolError`.
        """

        try:
            return cls(int(code))
        except (TypeError, ValueError):
            raise errors.ProtocolError('unrecognized status code: ' + repr(code))


    @classmethod
    def from_options(cls, options):
        if options is None:
            code = None
        else:
            code = options.get(fields.STATUS)

        return cls.from_code(code)


    def options(self):
        """ Return the reply options dictionary carrying this status.
        """

        return {fields.STATUS: self.code}


# end of class Status



class Chunk:
    """ One reply message carrying a slice of the transfer's bytes. The
        *data_length* and *hash* describe the entire transfer, not this
        slice, and are expected to be identical across every chunk of a
        single transfer.
    """

    __slots__ = ('data', 'data_length', 'hash', 'status')

    def __init__(self, data, data_length, hash, status=Status.COMPLETE):
        self.data = data
        self.data_length = data_length
        self.hash = hash
        self.status = status


    def __repr__(self):
        return 'Chunk(%d bytes of %r, %s)' % (len(self.data), self.data_length, self.status.name)


    def body(self):
        """ Return the reply body for this chunk.
        """

        body = dict()
        body[fields.DATA] = self.data
        body[fields.DATA_LENGTH] = self.data_length
        body[fields.HASH] = self.hash
        return body


    @classmethod
    def from_reply(cls, body, options):
        """ Interpret an inbound reply as a :class:`Chunk`. Missing fields are
            left as None for the caller to judge; a *data* field that is not a
            byte sequence raises :class:`chunkxfer.errors.ProtocolError`.
        """

        status = Status.from_options(options)

        if body is None:
            body = dict()

        data = body.get(fields.DATA)
        if data is None:
            data = b''
        elif isinstance(data, (bytearray, memoryview)):
            data = bytes(data)
        elif not isinstance(data, bytes):
            raise errors.ProtocolError('chunk data is not a byte sequence: ' + type(data).__name__)

        data_length = body.get(fields.DATA_LENGTH)
        hash = body.get(fields.HASH)

        return cls(data, data_length, hash, status)


# end of class Chunk



def digest(data):
    """ Return the raw 32-byte SHA-256 digest of *data*. The digest always
        covers a full transfer, never a single chunk.
    """

    return hashlib.sha256(data).digest()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
