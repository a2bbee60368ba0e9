import asyncio

import pytest

from gephclient.address import DomainAddress, SocketAddress, read_address
from gephclient.replies import (
    AUTH_METHOD_NONE,
    CMD_TCP_CONNECT,
    SOCKS5_VERSION,
    Reply,
    Socks5Error,
)
from gephclient.socks5 import (
    Command,
    HandshakeRequest,
    HandshakeResponse,
    TcpRequestHeader,
    TcpResponseHeader,
    connect,
)


def _reader(data):
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


def test_handshake_request_bytes():
    request = HandshakeRequest(bytes([AUTH_METHOD_NONE]))
    assert request.to_bytes() == b"\x05\x01\x00"
    assert request.serialized_len() == len(request.to_bytes())


def test_handshake_request_rejects_too_many_methods():
    with pytest.raises(ValueError):
        HandshakeRequest(bytes(256))


@pytest.mark.parametrize(
    "address", [DomainAddress("example.com", 443), SocketAddress("::1", 8080)]
)
def test_tcp_request_header_bytes(address):
    header = TcpRequestHeader(Command.TCP_CONNECT, address)
    encoded = header.to_bytes()
    assert encoded[:3] == bytes([SOCKS5_VERSION, CMD_TCP_CONNECT, 0])
    assert encoded[3:] == address.to_bytes()
    assert header.serialized_len() == len(encoded)


@pytest.mark.asyncio
async def test_handshake_response_read():
    response = await HandshakeResponse.read_from(
        _reader(bytes([SOCKS5_VERSION, AUTH_METHOD_NONE]))
    )
    assert response.chosen_method == AUTH_METHOD_NONE


@pytest.mark.asyncio
async def test_handshake_response_bad_version():
    with pytest.raises(Socks5Error) as info:
        await HandshakeResponse.read_from(_reader(b"\x04\x00"))
    assert "unsupported socks version" in str(info.value)


@pytest.mark.asyncio
async def test_tcp_response_header_read():
    bound = SocketAddress("10.0.0.2", 5555)
    data = bytes([SOCKS5_VERSION, Reply.CONNECTION_REFUSED, 0]) + bound.to_bytes()
    header = await TcpResponseHeader.read_from(_reader(data))
    assert header.reply is Reply.CONNECTION_REFUSED
    assert header.address == bound


@pytest.mark.asyncio
async def test_tcp_response_header_unknown_reply():
    bound = DomainAddress("example.com", 1)
    data = bytes([SOCKS5_VERSION, 0x20, 0]) + bound.to_bytes()
    header = await TcpResponseHeader.read_from(_reader(data))
    assert header.reply == 0x20
    assert not isinstance(header.reply, Reply)


@pytest.mark.asyncio
async def test_tcp_response_header_bad_version():
    data = bytes([4, 0, 0]) + SocketAddress("1.1.1.1", 1).to_bytes()
    with pytest.raises(Socks5Error) as info:
        await TcpResponseHeader.read_from(_reader(data))
    assert info.value.reply is Reply.CONNECTION_REFUSED


async def _start_proxy(reply_code, method=AUTH_METHOD_NONE):
    seen = []

    async def handler(reader, writer):
        try:
            seen.append(await reader.readexactly(3))
            writer.write(bytes([SOCKS5_VERSION, method]))
            await writer.drain()
            if method != AUTH_METHOD_NONE:
                await reader.read()
                return
            head = await reader.readexactly(3)
            target = await read_address(reader)
            seen.append((head, target))
            bound = SocketAddress("0.0.0.0", 0)
            writer.write(bytes([SOCKS5_VERSION, reply_code, 0]) + bound.to_bytes())
            if reply_code == Reply.SUCCEEDED:
                writer.write(b"pong")
            await writer.drain()
            await reader.read()
        finally:
            writer.close()

    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port, seen


@pytest.mark.asyncio
async def test_connect_success():
    server, port, seen = await _start_proxy(Reply.SUCCEEDED)
    target = DomainAddress("example.com", 443)
    try:
        reader, writer = await connect(target, "127.0.0.1", port)
        data = await reader.readexactly(4)
        writer.close()
        await writer.wait_closed()
    finally:
        server.close()
        await server.wait_closed()
    assert data == b"pong"
    assert seen[0] == HandshakeRequest(bytes([AUTH_METHOD_NONE])).to_bytes()
    head, received_target = seen[1]
    assert head == bytes([SOCKS5_VERSION, CMD_TCP_CONNECT, 0])
    assert received_target == target


@pytest.mark.asyncio
async def test_connect_failure_reply():
    server, port, _ = await _start_proxy(Reply.CONNECTION_REFUSED)
    try:
        with pytest.raises(Socks5Error) as info:
            await connect(SocketAddress("127.0.0.1", 9), "127.0.0.1", port)
    finally:
        server.close()
        await server.wait_closed()
    assert info.value.reply is Reply.CONNECTION_REFUSED
    assert str(info.value) == "Connection refused"


@pytest.mark.asyncio
async def test_connect_rejects_other_auth_method():
    server, port, _ = await _start_proxy(Reply.SUCCEEDED, method=0xFF)
    try:
        with pytest.raises(Socks5Error) as info:
            await connect(DomainAddress("example.com", 80), "127.0.0.1", port)
    finally:
        server.close()
        await server.wait_closed()
    assert info.value.reply is Reply.GENERAL_FAILURE