""" The serving half of a chunked transfer. A :class:`Producer` is mounted at
    an address on a message bus; each inbound request names a resource, and
    the producer answers it with an ordered sequence of chunk replies.
"""

import asyncio
import concurrent.futures
import inspect
import logging
import threading

from . import config
from . import errors
from .protocol import fields
from .protocol.message import Chunk, Status, digest

logger = logging.getLogger(__name__)


class Producer:
    """ Answer transfer requests by fetching the named buffer and replying
        with it in pieces no larger than the effective maximum chunk size.

        The *fetch* argument is required: it is called with the resource id
        of each request, and must return a bytes-like buffer. It may also
        return a :class:`concurrent.futures.Future` or an awaitable that
        produces the buffer. *maxchunk* is the default chunk size for
        requests that do not specify their own.

        An instance is callable, and is intended to be mounted directly::

            bus.mount('master', Producer(fetch=storage.get))

        Every request is self-contained; the only state that spans requests
        is the statistics counters.
    """

    def __init__(self, fetch=None, maxchunk=None):

        if fetch is None:
            raise errors.ConfigurationError('fetch method not provided for producer')

        if not callable(fetch):
            raise errors.ConfigurationError('fetch method is not callable: ' + repr(fetch))

        if maxchunk is not None:
            maxchunk = config.maxchunk(maxchunk)

        self.fetch = fetch
        self.maxchunk = maxchunk

        self.requests_served = 0
        self.chunks_served = 0
        self.bytes_served = 0
        self.stats_lock = threading.Lock()


    def __call__(self, context):
        self.handle(context)


    def handle(self, context):
        """ Serve one inbound request. Failures never propagate out of this
            method; they are reported to the requester as an ERROR reply.
        """

        if isinstance(context.body, dict):
            resource_id = context.body.get(fields.RESOURCE_ID)
        else:
            resource_id = None

        try:
            data = self._fetch(resource_id)
        except Exception as e:
            logger.error(f"Fetch of {resource_id!r} failed: {e}")
            self._fail(context, e)
            return

        if not isinstance(data, (bytes, bytearray, memoryview)):
            logger.error(f"Fetch of {resource_id!r} did not return a buffer: {type(data).__name__}")
            self._fail(context, 'fetch did not return a buffer')
            return

        try:
            sent = self.emit(context, bytes(data))
        except Exception as e:
            logger.exception(f"Transmission of {resource_id!r} failed")
            self._fail(context, 'transmission error: ' + str(e))
            return

        with self.stats_lock:
            self.requests_served += 1
            self.chunks_served += sent
            self.bytes_served += len(data)

        logger.debug(f"Served {resource_id!r}: {len(data)} bytes in {sent} chunks")


    def emit(self, context, data):
        """ Reply with *data* in order, starting at offset zero. All but the
            final chunk are PARTIAL; the final chunk, which may be empty if
            *data* is empty, is COMPLETE. Returns the number of chunks sent.
        """

        maxchunk = self.effective_maxchunk(context.options)

        data_length = len(data)
        hash = digest(data)

        start = 0
        sent = 0

        while data_length - start > maxchunk:
            end = start + maxchunk
            chunk = Chunk(data[start:end], data_length, hash, Status.PARTIAL)
            context.reply(chunk.body(), chunk.status.options())
            sent += 1
            start = end

        chunk = Chunk(data[start:], data_length, hash, Status.COMPLETE)
        context.reply(chunk.body(), chunk.status.options())
        sent += 1

        return sent


    def effective_maxchunk(self, options):
        """ The request's own maximum chunk size wins over the configured one.
        """

        requested = None
        if options:
            requested = options.get(fields.MAXCHUNK)

        if requested is not None:
            return config.maxchunk(requested)

        return config.maxchunk(self.maxchunk)


    def get_stats(self):

        with self.stats_lock:
            return {
                'requests_served': self.requests_served,
                'chunks_served': self.chunks_served,
                'bytes_served': self.bytes_served,
            }


    def _fetch(self, resource_id):

        result = self.fetch(resource_id)

        if isinstance(result, concurrent.futures.Future):
            return result.result()

        if inspect.isawaitable(result):
            return asyncio.run(_wait(result))

        return result


    def _fail(self, context, reason):

        body = dict()
        body[fields.MESSAGE] = str(reason)

        # The requester is waiting on the reply; the error address is only
        # informational, and goes second.

        try:
            context.reply(body, Status.ERROR.options())
        except Exception:
            logger.exception(f"Unable to report failure to {context.frm!r}")

        try:
            context.error(reason)
        except Exception:
            logger.exception(f"Unable to report failure of {context.to!r} to the error address")


# end of class Producer



async def _wait(awaitable):
    return await awaitable



def make_producer(fetch=None, maxchunk=None):
    """ Return a handler, suitable for mounting on a bus, that serves chunked
        transfers of the buffers returned by *fetch*.
    """

    return Producer(fetch, maxchunk)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
