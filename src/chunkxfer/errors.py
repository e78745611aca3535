""" Exceptions raised when a chunked transfer cannot be completed. Every
    failure surfaced to a caller is a :class:`TransferError` carrying a
    machine-checkable :class:`ErrorKind` and the status code the kind maps
    to; the human-readable explanation is the exception text.
"""

import enum


class ErrorKind(enum.Enum):

    CONFIGURATION_ERROR = 'CONFIGURATION_ERROR'
    FETCH_ERROR = 'FETCH_ERROR'
    PROTOCOL_ERROR = 'PROTOCOL_ERROR'
    DELIVERY_ERROR = 'DELIVERY_ERROR'
    TIMEOUT = 'TIMEOUT'
    CANCELLED = 'CANCELLED'


class TransferError(Exception):
    """ Base class for all transfer errors. The *status* attribute is the
        HTTP-flavored code associated with the error kind.
    """

    kind = None
    status = 500

    def __init__(self, message, status=None):
        Exception.__init__(self, message)
        self.message = message

        if status is not None:
            self.status = int(status)


    def __repr__(self):

        if self.kind is None:
            kind = None
        else:
            kind = self.kind.value

        return '%s(%r, kind=%s, status=%d)' % (self.__class__.__name__, self.message, kind, self.status)



class ConfigurationError(TransferError, ValueError):
    """ A producer or configuration value was set up incorrectly. Raised
        immediately; never sent over the wire.
    """

    kind = ErrorKind.CONFIGURATION_ERROR


class FetchError(TransferError):
    """ The producer could not obtain the requested buffer, and said so.
    """

    kind = ErrorKind.FETCH_ERROR


class ProtocolError(TransferError):
    """ The sequence of chunks received is inconsistent, incomplete, or
        otherwise does not follow the protocol.
    """

    kind = ErrorKind.PROTOCOL_ERROR


class DeliveryError(TransferError):
    """ The message bus refused to carry the request. The bus exception is
        available as the ``__cause__``; unlike a protocol error, issuing a
        fresh download once the bus recovers is reasonable.
    """

    kind = ErrorKind.DELIVERY_ERROR
    status = 503


class TransferTimeout(TransferError, TimeoutError):

    kind = ErrorKind.TIMEOUT
    status = 408


class TransferCancelled(TransferError):

    kind = ErrorKind.CANCELLED
    status = 499


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
