""" The receiving half of a chunked transfer. :func:`download` issues a
    single request to a producer and returns a :class:`Transfer`, a future
    that settles once the producer's chunk replies have been reassembled
    into the original buffer, or once the transfer fails.

    Each transfer is driven by its own background thread, reading events
    from a private channel: either a reply delivered by the bus, or a
    request to cancel. The inactivity timeout is the channel read timing
    out. Whichever event is read first is the one acted upon.
"""

import concurrent.futures
import logging
import queue
import threading

from . import config
from . import errors
from .protocol import fields
from .protocol.message import Chunk, Status, digest

logger = logging.getLogger(__name__)


AWAITING_FIRST_CHUNK = 'AWAITING_FIRST_CHUNK'
ACCUMULATING = 'ACCUMULATING'
SETTLED = 'SETTLED'

_CANCEL = object()


class Transfer(concurrent.futures.Future):
    """ A :class:`concurrent.futures.Future` for one download. The result
        is the assembled bytes; a failed transfer raises the relevant
        :class:`chunkxfer.errors.TransferError` subclass from
        :func:`result`.

        :ivar state: One of AWAITING_FIRST_CHUNK, ACCUMULATING, or SETTLED.
        :ivar address: The reply address unique to this transfer.
        :ivar received: The number of bytes accepted so far.
        :ivar hash: The transfer hash pinned by the first chunk.
        :ivar data_length: The transfer length pinned by the first chunk.
    """

    def __init__(self, bus, target, resource_id, options=None, progress=None):

        concurrent.futures.Future.__init__(self)

        if options is None:
            options = dict()

        self.bus = bus
        self.target = target
        self.resource_id = resource_id
        self.options = options
        self.progress = progress
        self.timeout = config.timeout(options.get(fields.TIMEOUT))

        self.state = AWAITING_FIRST_CHUNK
        self.address = None
        self.chunks = list()
        self.received = 0
        self.hash = None
        self.data_length = None

        self.channel = queue.SimpleQueue()
        self.thread = None


    def start(self):
        """ Register the reply receiver, then send the request. The receiver
            must exist before the request goes out, otherwise a fast producer
            could reply to an address nobody is listening on.
        """

        self.set_running_or_notify_cancel()
        self.address = self.bus.uid()
        self.bus.mount(self.address, self.channel.put)

        self.thread = threading.Thread(target=self.run, daemon=True,
                                       name='chunkxfer.transfer.' + self.address)
        self.thread.start()

        body = dict()
        body[fields.RESOURCE_ID] = self.resource_id

        logger.info(f"Requesting {self.resource_id!r} from {self.target!r} as {self.address}")

        try:
            self.bus.send(self.target, self.address, body, self.options)
        except Exception as e:
            error = errors.DeliveryError('unable to send request: ' + str(e))
            error.__cause__ = e
            self.channel.put(error)


    def cancel_transfer(self):
        """ Abandon the transfer. The future is rejected with
            :class:`chunkxfer.errors.TransferCancelled` unless it has already
            settled. Returns True if the cancellation is pending.
        """

        if self.done():
            return False

        self.channel.put(_CANCEL)
        return True


    def run(self):

        try:
            while self.state != SETTLED:
                self.step()
        except Exception as e:
            logger.exception(f"Transfer {self.address}: unexpected failure")
            error = errors.ProtocolError('transfer failed: ' + str(e))
            error.__cause__ = e
            self.fail(error)
        finally:
            # Whatever happened above, the transfer is over; never leave the
            # receiver mounted.
            self.release()


    def step(self):
        """ Wait for, and act upon, the next event in the channel.
        """

        try:
            event = self.channel.get(timeout=self.timeout)
        except queue.Empty:
            self.fail(errors.TransferTimeout('timeout'))
            return

        if event is _CANCEL:
            self.fail(errors.TransferCancelled('transfer cancelled'))
        elif isinstance(event, Exception):
            self.fail(event)
        else:
            try:
                self.accept(event)
            except errors.TransferError as e:
                self.fail(e)
            except Exception as e:
                logger.exception(f"Transfer {self.address}: unexpected failure handling reply")
                self.fail(errors.ProtocolError('invalid reply: ' + str(e)))


    def accept(self, context):
        """ Process one reply from the producer.
        """

        status = Status.from_options(context.options)

        if status == Status.ERROR:
            body = context.body
            if isinstance(body, dict):
                message = body.get(fields.MESSAGE)
            else:
                message = body
            raise errors.FetchError(str(message))

        chunk = Chunk.from_reply(context.body, context.options)

        if self.state == AWAITING_FIRST_CHUNK:
            if chunk.hash is None:
                raise errors.ProtocolError('hash not provided')
            if chunk.data_length is None:
                raise errors.ProtocolError('data length not provided')
            if not isinstance(chunk.hash, bytes):
                raise errors.ProtocolError('invalid hash: ' + repr(chunk.hash))
            if isinstance(chunk.data_length, bool) or not isinstance(chunk.data_length, int) or chunk.data_length < 0:
                raise errors.ProtocolError('invalid data length: ' + repr(chunk.data_length))

            self.hash = chunk.hash
            self.data_length = chunk.data_length
            self.state = ACCUMULATING
        else:
            if chunk.hash != self.hash:
                raise errors.ProtocolError('hash change during partial assembly')
            if chunk.data_length != self.data_length:
                raise errors.ProtocolError('data length change during partial assembly')

        self.chunks.append(chunk.data)
        self.received += len(chunk.data)
        self.report()

        logger.debug(f"Transfer {self.address}: {self.received}/{self.data_length} bytes ({status.name})")

        if status == Status.COMPLETE:
            self.finish()


    def finish(self):

        self.release()
        data = b''.join(self.chunks)

        if digest(data) != self.hash:
            raise errors.ProtocolError('hash mismatch')

        if len(data) != self.data_length:
            raise errors.ProtocolError('length mismatch: %r != %d' % (self.data_length, len(data)))

        self.state = SETTLED
        self.set_result(data)
        logger.info(f"Transfer {self.address} of {self.resource_id!r} complete: {len(data)} bytes")


    def fail(self, exception):

        self.release()
        self.state = SETTLED

        if self.done():
            return

        if isinstance(exception, errors.TransferTimeout):
            logger.warning(f"Transfer {self.address} of {self.resource_id!r} timed out after {self.timeout} seconds")
        else:
            logger.warning(f"Transfer {self.address} of {self.resource_id!r} failed: {exception}")

        self.set_exception(exception)


    def release(self):
        """ Unmount the reply receiver. Safe to call more than once.
        """

        self.bus.unmount(self.address)


    def report(self):

        if self.progress is None:
            return

        if self.data_length:
            fraction = self.received / self.data_length
        else:
            fraction = 1.0

        try:
            self.progress(fraction)
        except Exception:
            logger.exception(f"Progress callback for transfer {self.address} failed")


# end of class Transfer



def download(bus, target, resource_id, options=None, progress=None):
    """ Request the buffer named *resource_id* from the producer mounted at
        *target* on *bus*, and return a :class:`Transfer` future for the
        reassembled bytes.

        The *options* dictionary is sent to the producer as-is; it may carry
        a ``maxchunk`` override for the producer, and a ``timeout``, the
        number of seconds of inactivity tolerated before the transfer fails.
        A *timeout* of zero, or no *timeout*, waits indefinitely. The
        optional *progress* callable is invoked after every accepted chunk
        with the fraction of the transfer received so far.
    """

    transfer = Transfer(bus, target, resource_id, options, progress)
    transfer.start()
    return transfer


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
