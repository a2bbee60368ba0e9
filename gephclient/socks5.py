"""SOCKS5 client messages and the CONNECT handshake."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import IntEnum

from .address import Address, read_address
from .replies import (
    AUTH_METHOD_NONE,
    CMD_TCP_CONNECT,
    SOCKS5_VERSION,
    Reply,
    Socks5Error,
    reply_message,
)


class Command(IntEnum):
    """SOCKS5 request commands."""

    TCP_CONNECT = CMD_TCP_CONNECT


async def _read_exact(reader: asyncio.StreamReader, count: int) -> bytes:
    try:
        return await reader.readexactly(count)
    except asyncio.IncompleteReadError as exc:
        raise Socks5Error(Reply.GENERAL_FAILURE, "early eof") from exc


@dataclass(frozen=True)
class HandshakeRequest:
    """The client greeting listing the authentication methods it offers."""

    methods: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "methods", bytes(self.methods))
        if len(self.methods) > 0xFF:
            raise ValueError("too many authentication methods")

    def to_bytes(self) -> bytes:
        return bytes([SOCKS5_VERSION, len(self.methods)]) + self.methods

    def serialized_len(self) -> int:
        return 2 + len(self.methods)


@dataclass(frozen=True)
class HandshakeResponse:
    """The server's choice of authentication method."""

    chosen_method: int

    @classmethod
    async def read_from(cls, reader: asyncio.StreamReader) -> HandshakeResponse:
        version, method = await _read_exact(reader, 2)
        if version != SOCKS5_VERSION:
            raise Socks5Error(
                Reply.GENERAL_FAILURE, f"unsupported socks version {version:#x}"
            )
        return cls(method)


@dataclass(frozen=True)
class TcpRequestHeader:
    """A request for the proxy to carry out a command against an address."""

    command: Command
    address: Address

    def to_bytes(self) -> bytes:
        return bytes([SOCKS5_VERSION, int(self.command), 0x00]) + self.address.to_bytes()

    def serialized_len(self) -> int:
        return self.address.serialized_len() + 3


@dataclass(frozen=True)
class TcpResponseHeader:
    """The server's answer to a request: a reply code and its bound address."""

    reply: Reply | int
    address: Address

    @classmethod
    async def read_from(cls, reader: asyncio.StreamReader) -> TcpResponseHeader:
        version, reply_code, _reserved = await _read_exact(reader, 3)
        if version != SOCKS5_VERSION:
            raise Socks5Error(
                Reply.CONNECTION_REFUSED, f"unsupported socks version {version:#x}"
            )
        address = await read_address(reader)
        return cls(Reply.from_code(reply_code), address)


async def connect(
    address: Address, proxy_host: str, proxy_port: int
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a stream to ``address`` through the SOCKS5 proxy at the given host and port."""
    reader, writer = await asyncio.open_connection(proxy_host, proxy_port)
    try:
        writer.write(HandshakeRequest(bytes([AUTH_METHOD_NONE])).to_bytes())
        await writer.drain()
        response = await HandshakeResponse.read_from(reader)
        if response.chosen_method != AUTH_METHOD_NONE:
            raise Socks5Error(
                Reply.GENERAL_FAILURE,
                f"proxy chose unsupported auth method {response.chosen_method:#x}",
            )

        writer.write(TcpRequestHeader(Command.TCP_CONNECT, address).to_bytes())
        await writer.drain()
        header = await TcpResponseHeader.read_from(reader)
        if header.reply != Reply.SUCCEEDED:
            raise Socks5Error(header.reply, reply_message(header.reply))
    except BaseException:
        writer.close()
        raise
    return reader, writer