import threading

import pytest

import chunkxfer


@pytest.fixture
def bus():

    local = chunkxfer.bus.local.Bus()
    yield local
    local.close()


class Collector:
    """ Mountable handler recording every message it receives. The *done*
        event is set once a message arrives whose status is final, in other
        words anything other than PARTIAL.
    """

    def __init__(self):
        self.received = list()
        self.done = threading.Event()

    def __call__(self, context):
        self.received.append(context)

        status = context.options.get('statusCode')
        if status is None or int(status) != 206:
            self.done.set()

    def wait(self, timeout=5):
        assert self.done.wait(timeout), 'no final message received'
        return self.received


@pytest.fixture
def collector():
    return Collector()


def scripted(*replies):
    """ Return a handler that answers any request with the given sequence of
        (body, status code) replies, and nothing else.
    """

    def handler(context):
        for body, status in replies:
            context.reply(body, {'statusCode': status})

    return handler


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
