""" In-process implementation of the message bus. Each mounted address owns
    a private executor; messages sent to an address are queued on that
    executor in the order they were sent, which gives ordered delivery per
    address without any ordering constraint between addresses.
"""

import concurrent.futures
import fnmatch
import itertools
import logging
import threading
import uuid

from ..protocol import fields
from .base import Bus as BaseBus, BusError

logger = logging.getLogger(__name__)


class Context:
    """ The argument handed to a mounted handler for each inbound message.
        The *body* and *options* are whatever the sender provided; *to* is
        the address the message was delivered to, and *frm* is the address
        that replies will be sent to, if any.
    """

    def __init__(self, bus, to, frm=None, body=None, options=None):

        if options is None:
            options = dict()

        self.bus = bus
        self.to = to
        self.frm = frm
        self.body = body
        self.options = options


    def __repr__(self):
        return 'Context(to=%r, frm=%r, options=%r)' % (self.to, self.frm, self.options)


    def reply(self, body=None, options=None):
        """ Send a message back to the originator of this message. A handler
            is free to reply more than once; replies are delivered in the
            order they are issued.
        """

        if self.frm is None:
            raise BusError('message to %r has no return address' % (self.to))

        self.bus.send(self.frm, self.to, body, options)


    def error(self, reason):
        """ Report a diagnostic about this message to the well-known error
            address. This is purely informational; the originator is not
            notified unless the handler also calls :func:`reply`.
        """

        body = dict()
        body[fields.MESSAGE] = str(reason)
        self.bus.send(fields.ERROR_ADDRESS, self.to, body)


# end of class Context



class _Mount:
    """ A handler mounted at a single address, along with the executor that
        serializes (or, with more than one worker, parallelizes) invocations.
    """

    def __init__(self, address, handler, workers=1):

        workers = int(workers)
        if workers < 1:
            raise ValueError('a mount needs at least one worker: ' + repr(workers))

        self.address = address
        self.handler = handler
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=workers,
                                        thread_name_prefix='bus.' + address)


    def submit(self, context):
        self.executor.submit(self.invoke, context)


    def invoke(self, context):

        try:
            self.handler(context)
        except Exception:
            logger.exception(f"Handler at {self.address!r} failed")


    def shutdown(self):
        self.executor.shutdown(wait=False, cancel_futures=True)


# end of class _Mount



class Bus(BaseBus):
    """ A message bus confined to the current process. Handlers are invoked
        on background threads; a message sent to an address with no mounted
        handler is silently dropped, as it would be on a network bus.
    """

    def __init__(self):

        self.mounts = dict()
        self.mounts_lock = threading.Lock()
        self.closed = False

        self._prefix = uuid.uuid4().hex[:12]
        self._ticker = itertools.count()
        self._ticker_lock = threading.Lock()


    def mount(self, address, handler, workers=1):

        if self.closed:
            raise BusError('bus is closed')

        mount = _Mount(address, handler, workers)

        with self.mounts_lock:
            previous = self.mounts.get(address)
            self.mounts[address] = mount

        if previous is not None:
            previous.shutdown()

        logger.debug(f"Mounted {address!r}")


    def unmount(self, address):

        with self.mounts_lock:
            mount = self.mounts.pop(address, None)

        if mount is None:
            return False

        mount.shutdown()
        logger.debug(f"Unmounted {address!r}")
        return True


    def send(self, to, frm=None, body=None, options=None):
        self.deliver(Context(self, to, frm, body, options))


    def deliver(self, context):
        """ Hand a fully formed :class:`Context` to whichever handler is
            currently mounted at its address.
        """

        with self.mounts_lock:
            mount = self.mounts.get(context.to)

        if mount is None:
            logger.debug(f"No handler mounted at {context.to!r}, message dropped")
            return

        try:
            mount.submit(context)
        except RuntimeError:
            # The executor was shut down between the lookup and the submit;
            # this is equivalent to the address being unmounted.
            logger.debug(f"Handler at {context.to!r} went away, message dropped")


    def request(self, to, body=None, options=None):
        """ Send a message to *to* and return a
            :class:`concurrent.futures.Future` that resolves to the
            :class:`Context` of the first reply. The temporary reply address
            is released as soon as that reply arrives, or if the returned
            future is cancelled.
        """

        address = self.uid()
        future = concurrent.futures.Future()

        def receiver(context):
            self.unmount(address)
            if future.set_running_or_notify_cancel():
                future.set_result(context)

        def cancelled(future):
            if future.cancelled():
                self.unmount(address)

        future.add_done_callback(cancelled)
        self.mount(address, receiver)
        self.send(to, address, body, options)
        return future


    def uid(self):

        with self._ticker_lock:
            count = next(self._ticker)

        return '%s.%08x' % (self._prefix, count)


    def listeners(self, pattern='*'):

        with self.mounts_lock:
            addresses = list(self.mounts.keys())

        return [address for address in addresses if fnmatch.fnmatchcase(address, pattern)]


    def close(self):

        self.closed = True

        with self.mounts_lock:
            mounts = list(self.mounts.values())
            self.mounts.clear()

        for mount in mounts:
            mount.shutdown()


# end of class Bus


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
