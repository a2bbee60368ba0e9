"""SOCKS5 target addresses: wire encoding, decoding and host extraction from URIs."""

from __future__ import annotations

import asyncio
import ipaddress
import struct
from dataclasses import dataclass
from typing import Union

from .replies import (
    ADDR_TYPE_DOMAIN_NAME,
    ADDR_TYPE_IPV4,
    ADDR_TYPE_IPV6,
    Reply,
    Socks5Error,
)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _check_port(port: int) -> None:
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")


@dataclass(frozen=True)
class SocketAddress:
    """An IP address and port."""

    ip: IPAddress
    port: int

    def __post_init__(self) -> None:
        if isinstance(self.ip, (str, bytes, int)):
            object.__setattr__(self, "ip", ipaddress.ip_address(self.ip))
        _check_port(self.port)

    def to_bytes(self) -> bytes:
        kind = ADDR_TYPE_IPV4 if self.ip.version == 4 else ADDR_TYPE_IPV6
        return bytes([kind]) + self.ip.packed + struct.pack("!H", self.port)

    def serialized_len(self) -> int:
        return 1 + len(self.ip.packed) + 2

    def __str__(self) -> str:
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True)
class DomainAddress:
    """A domain name and port, resolved by the proxy."""

    host: str
    port: int

    def __post_init__(self) -> None:
        _check_port(self.port)

    def to_bytes(self) -> bytes:
        raw = self.host.encode("utf-8")
        if len(raw) > 0xFF:
            raise ValueError(f"domain name too long: {len(raw)} bytes")
        return (
            bytes([ADDR_TYPE_DOMAIN_NAME, len(raw)])
            + raw
            + struct.pack("!H", self.port)
        )

    def serialized_len(self) -> int:
        return 1 + 1 + len(self.host.encode("utf-8")) + 2

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


Address = Union[SocketAddress, DomainAddress]


async def _read_exact(reader: asyncio.StreamReader, count: int) -> bytes:
    try:
        return await reader.readexactly(count)
    except asyncio.IncompleteReadError as exc:
        raise Socks5Error(Reply.GENERAL_FAILURE, "early eof") from exc


async def read_address(reader: asyncio.StreamReader) -> Address:
    """Read one SOCKS5-encoded address from a stream."""
    (addr_type,) = await _read_exact(reader, 1)
    if addr_type == ADDR_TYPE_IPV4:
        data = await _read_exact(reader, 6)
        (port,) = struct.unpack("!H", data[4:])
        return SocketAddress(ipaddress.IPv4Address(data[:4]), port)
    if addr_type == ADDR_TYPE_IPV6:
        data = await _read_exact(reader, 18)
        (port,) = struct.unpack("!H", data[16:])
        return SocketAddress(ipaddress.IPv6Address(data[:16]), port)
    if addr_type == ADDR_TYPE_DOMAIN_NAME:
        (length,) = await _read_exact(reader, 1)
        data = await _read_exact(reader, length + 2)
        try:
            host = data[:length].decode("utf-8")
        except UnicodeDecodeError:
            raise Socks5Error(Reply.GENERAL_FAILURE, "invalid address encoding") from None
        (port,) = struct.unpack("!H", data[length:])
        return DomainAddress(host, port)
    raise Socks5Error(
        Reply.ADDRESS_TYPE_NOT_SUPPORTED,
        f"not supported addres type {addr_type:#x}",
    )


def _split_uri(uri: str) -> tuple[str | None, str | None]:
    """Split a request target into its scheme and authority, either possibly absent."""
    if uri.startswith("/") or uri == "*":
        return None, None
    if "://" in uri:
        scheme, _, rest = uri.partition("://")
        ends = [pos for pos in (rest.find(c) for c in "/?#") if pos >= 0]
        return scheme, rest[: min(ends, default=len(rest))]
    return None, uri


def _parse_port(text: str) -> int | None:
    if text == "":
        return None
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"invalid port: {text!r}")
    port = int(text)
    _check_port(port)
    return port


def _split_host_port(authority: str) -> tuple[str, int | None]:
    hostport = authority.rpartition("@")[2]
    if hostport.startswith("["):
        close = hostport.find("]")
        if close < 0:
            raise ValueError(f"unterminated IPv6 literal: {authority!r}")
        host, rest = hostport[: close + 1], hostport[close + 1 :]
        if rest == "":
            return host, None
        if not rest.startswith(":"):
            raise ValueError(f"invalid authority: {authority!r}")
        return host, _parse_port(rest[1:])
    host, sep, port = hostport.rpartition(":")
    if not sep:
        return hostport, None
    return host, _parse_port(port)


def _parse_socket_addr(text: str) -> SocketAddress | None:
    try:
        if text.startswith("["):
            close = text.find("]")
            if close < 0 or text[close + 1 : close + 2] != ":":
                return None
            ip: IPAddress = ipaddress.IPv6Address(text[1:close])
            port = _parse_port(text[close + 2 :])
        else:
            host, sep, port_text = text.rpartition(":")
            if not sep:
                return None
            ip = ipaddress.IPv4Address(host)
            port = _parse_port(port_text)
    except ValueError:
        return None
    if port is None:
        return None
    return SocketAddress(ip, port)


def _default_port(scheme: str | None) -> int | None:
    if scheme is None:
        return 80
    return {"http": 80, "https": 443}.get(scheme.lower())


def host_addr(uri: str) -> Address | None:
    """The address a request target points at, or None if it names no usable host."""
    scheme, authority = _split_uri(uri)
    if not authority:
        return None
    try:
        host, port = _split_host_port(authority)
    except ValueError:
        return None

    if port is not None:
        socket_addr = _parse_socket_addr(authority)
        if socket_addr is not None:
            return socket_addr
        return DomainAddress(host, port)

    port = _default_port(scheme)
    if port is None:
        return None
    if authority.startswith("[") and authority.endswith("]"):
        try:
            ip = ipaddress.ip_address(authority.lstrip("[").rstrip("]"))
        except ValueError:
            return None
        return SocketAddress(ip, port)
    try:
        return SocketAddress(ipaddress.ip_address(authority), port)
    except ValueError:
        return DomainAddress(authority, port)