"""HTTP proxy that relays plain requests and CONNECT tunnels through a SOCKS5 proxy."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from dataclasses import dataclass

from .address import Address, DomainAddress, SocketAddress, host_addr
from .socks5 import connect

log = logging.getLogger(__name__)

HTTP_10 = "HTTP/1.0"
HTTP_11 = "HTTP/1.1"

HOP_BY_HOP_HEADERS = (
    "Keep-Alive",
    "Transfer-Encoding",
    "TE",
    "Connection",
    "Trailer",
    "Upgrade",
    "Proxy-Authorization",
    "Proxy-Authenticate",
    "Proxy-Connection",
)

_BAD_REQUEST = b"HTTP/1.1 400 Bad Request\r\nContent-Length: 0\r\n\r\n"
_CONNECT_OK = b"HTTP/1.1 200 OK\r\n\r\n"
_COPY_CHUNK = 64 * 1024


def _get_all(headers: list[tuple[str, str]], name: str) -> list[str]:
    wanted = name.lower()
    return [value for key, value in headers if key.lower() == wanted]


def _remove(headers: list[tuple[str, str]], name: str) -> None:
    wanted = name.lower()
    headers[:] = [(key, value) for key, value in headers if key.lower() != wanted]


def _is_header_text(value: str) -> bool:
    return all(c == "\t" or 0x20 <= ord(c) < 0x7F for c in value)


def _default_keep_alive(version: str) -> bool:
    if version == HTTP_10:
        return False
    if version == HTTP_11:
        return True
    raise ValueError("HTTP proxy only supports 1.0 and 1.1")


def _parse_authority(authority: str) -> tuple[str, int | None]:
    """Split an authority into host and optional port, ignoring any userinfo."""
    hostport = authority.rpartition("@")[2]
    if not hostport or any(c.isspace() or c in "/?#" for c in hostport):
        raise ValueError(f"invalid authority: {authority!r}")
    if hostport.startswith("["):
        close = hostport.find("]")
        if close < 0:
            raise ValueError(f"unterminated IPv6 literal: {authority!r}")
        host, rest = hostport[: close + 1], hostport[close + 1 :]
    else:
        host, sep, port_text = hostport.partition(":")
        rest = sep + port_text
    if not host:
        raise ValueError(f"authority has no host: {authority!r}")
    if not rest:
        return host, None
    if not rest.startswith(":"):
        raise ValueError(f"invalid authority: {authority!r}")
    port_text = rest[1:]
    if port_text == "":
        return host, None
    if not (port_text.isascii() and port_text.isdigit()):
        raise ValueError(f"invalid port: {port_text!r}")
    port = int(port_text)
    if port > 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    return host, port


def authority_addr(scheme: str | None, authority: str) -> Address | None:
    """The address an authority (as in a Host header) names, or None if it is unusable."""
    try:
        host, port = _parse_authority(authority)
    except ValueError:
        return None
    if port is None:
        if scheme is None:
            port = 80
        else:
            port = {"http": 80, "https": 443}.get(scheme.lower())
            if port is None:
                return None

    if host.startswith("[") and host.endswith("]"):
        try:
            return SocketAddress(ipaddress.IPv6Address(host[1:-1]), port)
        except ValueError:
            return None
    try:
        return SocketAddress(ipaddress.IPv4Address(host), port)
    except ValueError:
        return DomainAddress(host, port)


def _apply_connection_values(values: list[str], keep_alive: bool) -> bool:
    for value in values:
        if not _is_header_text(value):
            continue
        if value.lower() == "close":
            keep_alive = False
        elif any(part.strip().lower() == "keep-alive" for part in value.split(",")):
            keep_alive = True
    return keep_alive


def check_keep_alive(
    version: str, headers: list[tuple[str, str]], check_proxy: bool
) -> bool:
    """Whether a message asks for its connection to be kept open."""
    keep_alive = _default_keep_alive(version)
    if check_proxy:
        keep_alive = _apply_connection_values(
            _get_all(headers, "Proxy-Connection"), keep_alive
        )
    return _apply_connection_values(_get_all(headers, "Connection"), keep_alive)


def clear_hop_headers(headers: list[tuple[str, str]]) -> None:
    """Remove hop-by-hop headers, including those named in Connection headers."""
    extra: list[str] = []
    for name in ("Connection", "Proxy-Connection"):
        for value in _get_all(headers, name):
            if not _is_header_text(value) or value.lower() == "close":
                continue
            extra.extend(
                part.strip()
                for part in value.split(",")
                if part.strip().lower() != "keep-alive"
            )
    for name in extra:
        if name:
            _remove(headers, name)
    for name in HOP_BY_HOP_HEADERS:
        _remove(headers, name)


def set_conn_keep_alive(
    version: str, headers: list[tuple[str, str]], keep_alive: bool
) -> None:
    """Add a Connection header where the wanted behaviour differs from the version's default."""
    default = _default_keep_alive(version)
    if keep_alive == default:
        return
    _remove(headers, "Connection")
    headers.append(("Connection", "keep-alive" if keep_alive else "close"))


def _target_parts(target: str) -> tuple[str | None, str | None, str]:
    """Split a request target into scheme, authority and origin-form path."""
    if target.startswith("/") or target == "*":
        return None, None, target
    if "://" in target:
        scheme, _, rest = target.partition("://")
        ends = [pos for pos in (rest.find(c) for c in "/?#") if pos >= 0]
        cut = min(ends, default=len(rest))
        path = rest[cut:].split("#", 1)[0]
        if not path.startswith("/"):
            path = "/" + path
        return scheme, rest[:cut], path
    return None, target, "/"


async def _read_head(reader: asyncio.StreamReader) -> tuple[str, list[tuple[str, str]]] | None:
    """Read a start line and headers; None if the stream ended cleanly first."""
    try:
        raw = await reader.readuntil(b"\r\n\r\n")
    except asyncio.IncompleteReadError as exc:
        if not exc.partial.strip():
            return None
        raise ValueError("connection closed inside message head") from exc
    except asyncio.LimitOverrunError as exc:
        raise ValueError("message head too large") from exc
    lines = raw.decode("latin-1").split("\r\n")[:-2]
    while lines and lines[0] == "":
        lines.pop(0)
    if not lines:
        raise ValueError("empty message head")
    start, *rest = lines
    headers: list[tuple[str, str]] = []
    for line in rest:
        name, sep, value = line.partition(":")
        if not sep or not name or name != name.strip():
            raise ValueError(f"malformed header line: {line!r}")
        headers.append((name, value.strip()))
    return start, headers


async def _read_chunked(reader: asyncio.StreamReader) -> bytes:
    body = bytearray()
    while True:
        line = await reader.readuntil(b"\r\n")
        size = int(line.split(b";", 1)[0].strip(), 16)
        if size == 0:
            while (await reader.readuntil(b"\r\n")) != b"\r\n":
                pass
            return bytes(body)
        body += await reader.readexactly(size)
        await reader.readexactly(2)


async def _read_body(
    reader: asyncio.StreamReader, headers: list[tuple[str, str]], *, until_eof: bool
) -> bytes:
    encodings = ",".join(_get_all(headers, "Transfer-Encoding")).lower()
    if "chunked" in encodings:
        return await _read_chunked(reader)
    lengths = _get_all(headers, "Content-Length")
    if lengths:
        length = int(lengths[0].strip())
        if length < 0:
            raise ValueError(f"negative content length: {length}")
        return await reader.readexactly(length)
    if until_eof:
        return await reader.read()
    return b""


def _with_length(headers: list[tuple[str, str]], body: bytes) -> list[tuple[str, str]]:
    result = list(headers)
    _remove(result, "Content-Length")
    result.append(("Content-Length", str(len(body))))
    return result


def _encode(start: str, headers: list[tuple[str, str]], body: bytes = b"") -> bytes:
    head = start + "\r\n" + "".join(f"{k}: {v}\r\n" for k, v in headers) + "\r\n"
    return head.encode("latin-1") + body


async def _copy(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    while data := await reader.read(_COPY_CHUNK):
        writer.write(data)
        await writer.drain()


@dataclass
class _Response:
    version: str
    status: int
    reason: str
    headers: list[tuple[str, str]]
    body: bytes | None


class ProxyServer:
    """Serves HTTP proxy clients, reaching every target through one SOCKS5 proxy."""

    def __init__(self, proxy_host: str, proxy_port: int) -> None:
        self.proxy_host = proxy_host
        self.proxy_port = proxy_port

    async def handle(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Serve one client connection until it closes or asks to be closed."""
        peer = writer.get_extra_info("peername")
        try:
            while await self._serve_one(reader, writer, peer):
                pass
        except (OSError, EOFError) as exc:
            log.debug("HTTP client %s failed: %s", peer, exc)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, EOFError):
                pass

    async def _serve_one(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, peer
    ) -> bool:
        try:
            head = await _read_head(reader)
            if head is None:
                return False
            start, headers = head
            method, target, version = start.split(" ")
        except ValueError as exc:
            log.debug("malformed request from %s: %s", peer, exc)
            await self._write(writer, _BAD_REQUEST)
            return False
        if version not in (HTTP_10, HTTP_11):
            await self._write(writer, _BAD_REQUEST)
            return False

        scheme, authority, path = _target_parts(target)
        host = host_addr(target)
        if host is None:
            log.debug("HTTP %s URI %s doesn't have a valid host", method, target)
            host_headers = _get_all(headers, "Host")
            if authority or not host_headers:
                await self._write(writer, _BAD_REQUEST)
                return False
            authority = host_headers[0]
            host = authority_addr(scheme, authority)
            if host is None:
                log.debug("HTTP %s URI %s \"Host\" header invalid: %s", method, target, authority)
                await self._write(writer, _BAD_REQUEST)
                return False
            log.debug("HTTP %s URI %s got host from header: %s", method, target, host)

        if method == "CONNECT":
            await self._tunnel(reader, writer, host, peer)
            return False

        try:
            body = await _read_body(reader, headers, until_eof=False)
        except ValueError as exc:
            log.debug("malformed request body from %s: %s", peer, exc)
            await self._write(writer, _BAD_REQUEST)
            return False

        log.debug("HTTP %s %s", method, host)
        conn_keep_alive = check_keep_alive(version, headers, True)
        clear_hop_headers(headers)
        set_conn_keep_alive(version, headers, conn_keep_alive)

        try:
            response = await self._relay(
                method, path, version, headers, body, host, authority or str(host)
            )
            res_keep_alive = conn_keep_alive and check_keep_alive(
                response.version, response.headers, False
            )
            clear_hop_headers(response.headers)
            set_conn_keep_alive(response.version, response.headers, res_keep_alive)
        except (OSError, EOFError, ValueError) as exc:
            log.debug("HTTP %s %s <-> %s relay failed: %s", method, peer, host, exc)
            message = f"Relay failed to {host}".encode()
            error_headers = [("Content-Length", str(len(message)))]
            set_conn_keep_alive(HTTP_11, error_headers, conn_keep_alive)
            await self._write(
                writer,
                _encode("HTTP/1.1 500 Internal Server Error", error_headers, message),
            )
            return conn_keep_alive

        out_headers = response.headers
        if response.body is not None:
            out_headers = _with_length(out_headers, response.body)
        status_line = f"{response.version} {response.status} {response.reason}".rstrip()
        await self._write(writer, _encode(status_line, out_headers, response.body or b""))
        return res_keep_alive

    async def _relay(
        self,
        method: str,
        path: str,
        version: str,
        headers: list[tuple[str, str]],
        body: bytes,
        host: Address,
        authority: str,
    ) -> _Response:
        up_reader, up_writer = await connect(host, self.proxy_host, self.proxy_port)
        try:
            out_headers = list(headers)
            if not _get_all(out_headers, "Host"):
                out_headers.insert(0, ("Host", authority))
            if body or _get_all(out_headers, "Content-Length"):
                out_headers = _with_length(out_headers, body)
            up_writer.write(_encode(f"{method} {path} {version}", out_headers, body))
            await up_writer.drain()

            while True:
                head = await _read_head(up_reader)
                if head is None:
                    raise ConnectionError("upstream closed without a response")
                start, res_headers = head
                parts = start.split(" ", 2)
                if len(parts) < 2 or not parts[1].isdigit():
                    raise ValueError(f"malformed status line: {start!r}")
                status = int(parts[1])
                if 100 <= status < 200 and status != 101:
                    continue
                break
            reason = parts[2] if len(parts) == 3 else ""
            if method == "HEAD" or 100 <= status < 200 or status in (204, 304):
                res_body = None
            else:
                res_body = await _read_body(up_reader, res_headers, until_eof=True)
            return _Response(parts[0], status, reason, res_headers, res_body)
        finally:
            up_writer.close()

    async def _tunnel(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        host: Address,
        peer,
    ) -> None:
        up_reader, up_writer = await connect(host, self.proxy_host, self.proxy_port)
        log.debug("CONNECT relay connected %s <-> %s", peer, host)
        try:
            await self._write(writer, _CONNECT_OK)
            tasks = [
                asyncio.create_task(_copy(reader, up_writer)),
                asyncio.create_task(_copy(up_reader, writer)),
            ]
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                if task.exception() is not None:
                    log.debug(
                        "CONNECT relay %s <-> %s closed with error %s",
                        peer,
                        host,
                        task.exception(),
                    )
        finally:
            up_writer.close()
        log.debug("CONNECT relay %s <-> %s closed", peer, host)

    @staticmethod
    async def _write(writer: asyncio.StreamWriter, data: bytes) -> None:
        writer.write(data)
        await writer.drain()


async def run(listen_host: str, listen_port: int, proxy_host: str, proxy_port: int) -> None:
    """Listen for HTTP proxy clients and serve them through the SOCKS5 proxy forever."""
    proxy = ProxyServer(proxy_host, proxy_port)
    server = await asyncio.start_server(proxy.handle, listen_host, listen_port)
    async with server:
        await server.serve_forever()