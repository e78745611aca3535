import asyncio
import concurrent.futures
import math
import threading
import time

import chunkxfer
import pytest

from conftest import Collector


def test_requires_fetch():

    with pytest.raises(chunkxfer.ConfigurationError):
        chunkxfer.make_producer()

    with pytest.raises(chunkxfer.ConfigurationError):
        chunkxfer.make_producer(fetch='not callable')

    with pytest.raises(chunkxfer.ConfigurationError):
        chunkxfer.make_producer(fetch=lambda id: b'', maxchunk=0)


def test_fetch_receives_resource_id(bus):

    requested = list()
    seen = threading.Event()

    def fetch(id):
        requested.append(id)
        seen.set()
        raise RuntimeError('nothing here')

    bus.mount('master', chunkxfer.make_producer(fetch=fetch))
    bus.request('master', {'_id': 'germany'})

    assert seen.wait(5)
    assert requested == ['germany']


def test_fetch_error_is_reported(bus, collector):

    def fetch(id):
        raise RuntimeError('floor')

    bus.mount('master', chunkxfer.make_producer(fetch=fetch))
    bus.mount('error', collector)

    reply = bus.request('master', {'_id': 'germany'}).result(timeout=5)

    assert int(reply.options['statusCode']) == 500
    assert reply.body['message'] == 'floor'

    # The same diagnostic also goes to the error address.

    errors = collector.wait()
    assert len(errors) == 1
    assert errors[0].body['message'] == 'floor'


class NoErrorAddressBus(chunkxfer.bus.local.Bus):
    """ Local bus on which the error address cannot be reached.
    """

    def send(self, to, frm=None, body=None, options=None):
        if to == 'error':
            raise chunkxfer.bus.BusConnectionError('error address unreachable')
        chunkxfer.bus.local.Bus.send(self, to, frm, body, options)


def test_fetch_error_without_error_address():

    def fetch(id):
        raise RuntimeError('floor')

    bus = NoErrorAddressBus()

    try:
        bus.mount('master', chunkxfer.make_producer(fetch=fetch))
        reply = bus.request('master', {'_id': 'germany'}).result(timeout=5)
    finally:
        bus.close()

    assert int(reply.options['statusCode']) == 500
    assert reply.body['message'] == 'floor'


def test_fetch_must_return_buffer(bus):

    bus.mount('master', chunkxfer.make_producer(fetch=lambda id: 'leaving'))

    reply = bus.request('master', {'_id': 'germany'}).result(timeout=5)

    assert int(reply.options['statusCode']) == 500
    assert 'buffer' in reply.body['message']


def test_below_chunk_size(bus):

    data = b'busorsomething'
    producer = chunkxfer.make_producer(fetch=lambda id: data, maxchunk=2 * len(data))
    bus.mount('master', producer)

    reply = bus.request('master', {'_id': 'germany'}).result(timeout=5)

    assert int(reply.options['statusCode']) == 200
    assert reply.body['data'] == data
    assert reply.body['dataLength'] == len(data)
    assert reply.body['hash'] == chunkxfer.digest(data)


def test_equal_chunk_size(bus, collector):

    data = b'busorsomething'
    producer = chunkxfer.make_producer(fetch=lambda id: data, maxchunk=len(data))
    bus.mount('master', producer)
    bus.mount('collector', collector)

    bus.send('master', 'collector', {'_id': 'germany'})
    replies = collector.wait()

    assert len(replies) == 1
    assert int(replies[0].options['statusCode']) == 200
    assert replies[0].body['data'] == data


def test_chunking(bus):

    data = bytes(range(256)) * 7 + b'tail'

    for maxchunk in (1, 3, 100, len(data) - 1):
        collector = Collector()
        producer = chunkxfer.make_producer(fetch=lambda id: data, maxchunk=maxchunk)
        bus.mount('master', producer)
        bus.mount('collector', collector)

        bus.send('master', 'collector', {'_id': 'anything'})
        replies = collector.wait()

        statuses = [int(reply.options['statusCode']) for reply in replies]
        expected = math.ceil(len(data) / maxchunk)

        assert len(replies) == expected
        assert statuses == [206] * (expected - 1) + [200]

        for reply in replies:
            assert reply.body['dataLength'] == len(data)
            assert reply.body['hash'] == chunkxfer.digest(data)
            assert 0 < len(reply.body['data']) <= maxchunk

        assert b''.join(reply.body['data'] for reply in replies) == data

        bus.unmount('collector')


def test_empty_buffer(bus, collector):

    bus.mount('master', chunkxfer.make_producer(fetch=lambda id: b''))
    bus.mount('collector', collector)

    bus.send('master', 'collector', {'_id': 'empty'})
    replies = collector.wait()

    assert len(replies) == 1
    assert int(replies[0].options['statusCode']) == 200
    assert replies[0].body['data'] == b''
    assert replies[0].body['dataLength'] == 0
    assert replies[0].body['hash'] == chunkxfer.digest(b'')


def test_request_overrides_maxchunk(bus, collector):

    data = b'0123456789'
    producer = chunkxfer.make_producer(fetch=lambda id: data, maxchunk=100)
    bus.mount('master', producer)
    bus.mount('collector', collector)

    bus.send('master', 'collector', {'_id': 'digits'}, {'maxchunk': 4})
    replies = collector.wait()

    assert [reply.body['data'] for reply in replies] == [b'0123', b'4567', b'89']


def test_invalid_requested_maxchunk(bus):

    bus.mount('master', chunkxfer.make_producer(fetch=lambda id: b'data'))

    reply = bus.request('master', {'_id': 'x'}, {'maxchunk': 'lots'}).result(timeout=5)

    assert int(reply.options['statusCode']) == 500
    assert reply.body['message'].startswith('transmission error')


def test_default_maxchunk_from_environment(bus, collector, monkeypatch):

    monkeypatch.setenv('CHUNKXFER_MAXCHUNK', '3')

    bus.mount('master', chunkxfer.make_producer(fetch=lambda id: b'abcdefg'))
    bus.mount('collector', collector)

    bus.send('master', 'collector', {'_id': 'x'})
    replies = collector.wait()

    assert [reply.body['data'] for reply in replies] == [b'abc', b'def', b'g']


def test_asynchronous_fetch(bus):

    async def fetch(id):
        await asyncio.sleep(0.01)
        return id.encode()

    bus.mount('master', chunkxfer.make_producer(fetch=fetch))
    reply = bus.request('master', {'_id': 'coroutine'}).result(timeout=5)

    assert reply.body['data'] == b'coroutine'


def test_future_fetch(bus):

    workers = concurrent.futures.ThreadPoolExecutor(max_workers=1)

    def fetch(id):
        return workers.submit(lambda: bytearray(b'from a future'))

    bus.mount('master', chunkxfer.make_producer(fetch=fetch))
    reply = bus.request('master', {'_id': 'future'}).result(timeout=5)

    assert reply.body['data'] == b'from a future'
    workers.shutdown()


def test_stats(bus, collector):

    producer = chunkxfer.make_producer(fetch=lambda id: b'abcdef', maxchunk=2)
    bus.mount('master', producer)
    bus.mount('collector', collector)

    bus.send('master', 'collector', {'_id': 'x'})
    collector.wait()

    # The counters are updated after the final reply goes out.

    deadline = time.time() + 5
    while producer.get_stats()['requests_served'] == 0 and time.time() < deadline:
        time.sleep(0.01)

    stats = producer.get_stats()
    assert stats['requests_served'] == 1
    assert stats['chunks_served'] == 3
    assert stats['bytes_served'] == 6


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
