""" End-to-end transfers between two ZeroMQ buses in the same process,
    talking to each other over the loopback interface.
"""

import chunkxfer
import chunkxfer.bus.zmq
import pytest


@pytest.fixture
def buses():

    server = chunkxfer.bus.zmq.Bus(hostname='localhost')
    client = chunkxfer.bus.zmq.Bus(hostname='localhost')
    client.connect('server', '127.0.0.1', server.port)

    yield server, client

    client.close()
    server.close()


def test_ports(buses):

    server, client = buses

    assert server.port != client.port
    assert chunkxfer.bus.zmq.minimum_port <= server.port <= chunkxfer.bus.zmq.maximum_port


def test_remote_download(buses):

    server, client = buses

    data = bytes(range(256)) * 20
    producer = chunkxfer.make_producer(fetch=lambda id: data, maxchunk=1000)
    server.mount('master', producer)

    progress = list()
    transfer = chunkxfer.download(client, 'server/master', 'germany', {'timeout': 5}, progress.append)

    assert transfer.result(timeout=10) == data
    assert len(progress) == 6
    assert client.listeners() == []


def test_remote_fetch_error(buses):

    server, client = buses

    def fetch(id):
        raise KeyError(id)

    server.mount('master', chunkxfer.make_producer(fetch=fetch))

    with pytest.raises(chunkxfer.FetchError) as caught:
        chunkxfer.download(client, 'server/master', 'missing', {'timeout': 5}).result(timeout=10)

    assert 'missing' in caught.value.message


def test_remote_request(buses):

    server, client = buses

    def echo(context):
        context.reply(context.body, {'statusCode': 200})

    server.mount('echo', echo)

    reply = client.request('server/echo', {'hash': b'\x00\xff'}).result(timeout=10)

    assert reply.body == {'hash': b'\x00\xff'}
    assert reply.frm == 'server/echo'


def test_remote_timeout(buses):

    server, client = buses

    with pytest.raises(chunkxfer.TransferTimeout):
        chunkxfer.download(client, 'server/nobody', 'x', {'timeout': 0.2}).result(timeout=10)

    assert client.listeners() == []


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
