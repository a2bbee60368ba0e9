# gephclient

This is a small toolkit for the client side of a proxy tunnel. It uses only
the standard library and needs Python 3.10 or newer.

- `gephclient.proxy` is an HTTP proxy that reaches every target through a
  SOCKS5 server.
- `gephclient.socks5`, `gephclient.address` and `gephclient.replies` hold the
  SOCKS5 messages, address codecs, reply codes and error type.
- `gephclient.logs`, `gephclient.debugpack`, `gephclient.statecache`,
  `gephclient.metrics` and `gephclient.fronts` are support utilities.

## The HTTP-to-SOCKS5 bridge

```python
import asyncio
from gephclient.proxy import run

# Accept HTTP proxy clients on 127.0.0.1:8080 and reach every target
# through the SOCKS5 server at 127.0.0.1:1080.
asyncio.run(run("127.0.0.1", 8080, "127.0.0.1", 1080))
```

`ProxyServer(proxy_host, proxy_port)` holds the address of the upstream SOCKS5
server. Its coroutine `handle(reader, writer)` serves one client connection,
so it can be passed to your own `asyncio.start_server`.

The proxy handles requests in two ways.

**CONNECT requests.** The proxy opens a SOCKS5 stream to the target and
answers `200 OK`. It then copies bytes in both directions until one side
closes.

**Other requests.** The proxy follows these steps:

1. It takes the target from the absolute URI. If the URI has no authority,
   it takes the target from the `Host` header instead.
2. It removes hop-by-hop headers, including any that a `Connection` or
   `Proxy-Connection` header names.
3. It sends the request upstream in origin form.
4. It reads the whole response, removes hop-by-hop headers from it and sends
   it back with a `Content-Length`. Chunked responses are decoded first.

The proxy replies `400 Bad Request` when the request is malformed or names no
usable host. It replies `500 Internal Server Error` with the text
`Relay failed to <host>` when the relay fails. It accepts only HTTP/1.0 and
HTTP/1.1. Connections are kept alive or closed by the rules of each version.

### Header helpers

Headers are lists of `(name, value)` pairs. Names are matched without regard
to case.

```python
from gephclient.proxy import authority_addr, check_keep_alive

authority_addr("https", "example.com")     # DomainAddress, str() == "example.com:443"
authority_addr(None, "127.0.0.1:8000")     # SocketAddress, str() == "127.0.0.1:8000"
authority_addr("ftp", "example.com")       # None: no port and scheme not supported

check_keep_alive("HTTP/1.0", [("Connection", "keep-alive")], False)   # True
```

- `check_keep_alive(version, headers, check_proxy)` decides whether a message
  asks to keep its connection open. When `check_proxy` is true it also reads
  `Proxy-Connection`.
- `clear_hop_headers(headers)` removes hop-by-hop headers in place.
- `set_conn_keep_alive(version, headers, keep_alive)` adds a `Connection`
  header only where the behaviour you want differs from the version's
  default.
- Each of these functions raises `ValueError` for an HTTP version other than
  1.0 or 1.1.

## Addresses and SOCKS5 messages

```python
from gephclient.address import host_addr
from gephclient.socks5 import Command, TcpRequestHeader

addr = host_addr("http://example.com/index.html")   # DomainAddress("example.com", 80)
header = TcpRequestHeader(Command.TCP_CONNECT, addr)
wire = header.to_bytes()
assert len(wire) == header.serialized_len()
```

`SocketAddress(ip, port)` and `DomainAddress(host, port)` are frozen
dataclasses. Each has `to_bytes()` and `serialized_len()`. IPv6 addresses
print as `[ip]:port`.

`host_addr(uri)` returns the address a request target points at, or `None`.
It uses port 80 by default, or 443 for `https`.

The readers work on any `asyncio.StreamReader`:

- `read_address(reader)`
- `HandshakeResponse.read_from(reader)`
- `TcpResponseHeader.read_from(reader)`

Protocol failures raise `Socks5Error`, a subclass of `OSError`. It carries
`reply` (a `Reply` or a raw code) and `message`. A truncated stream raises
`Socks5Error` with the message `early eof`. `reply_message(code)` gives the
text for any reply code from 0 to 255, for example `"Connection refused"` or
`"Other reply (9)"`.

`connect(address, proxy_host, proxy_port)` opens a connection to the SOCKS5
server and offers it only the no-authentication method. It then asks the
server to connect to `address`. It returns the `(reader, writer)` pair, and
raises `Socks5Error` if the server refuses.

## Utilities

### LogBuffer

```python
from gephclient.logs import LogBuffer

buf = LogBuffer(16)
buf.add_line("hello")
buf.add_line("world")
buf.get_logs()      # "hello\nworld\n"; only the newest 16 characters are kept
```

### DebugPack

```python
from datetime import datetime, timezone
from gephclient.debugpack import DebugPack

with DebugPack("debug.db") as pack:
    pack.add_logline("connected")
    pack.add_timeseries("uptime", 12.5)
pack = DebugPack("debug.db")
pack.get_loglines(datetime(2000, 1, 1, tzinfo=timezone.utc))  # [(datetime, "connected"), ...]
pack.backup("debug-export.db")
pack.close()
```

`DebugPack` is a SQLite store. When it opens, it deletes rows older than one
day. Lines and samples go through two small queues to background writer
threads, and a full queue drops the entry. `close()` and leaving the `with`
block write out what is queued and then close the database.

### FlatFileStateCache

`FlatFileStateCache(root)` creates the directory `root` and stores each blob
in a file named by the hex of its key. `get_blob(key)` returns the bytes, or
`None` on a miss. `insert_blob(key, value)` ignores write errors.

### Connection metrics

`ConnEstablished(bridges, total_latency)` holds a list of
`BridgeMetrics(address, protocol, pipe_latency)`.

- `to_dict()` returns a mapping tagged `"type": "conn_established"`.
- `to_json()` returns the same data as compact JSON.

### MultiTransport

`MultiTransport(transports, attempt_timeout=3.0, max_elapsed=30.0)` sends a
request through one transport at a time. Each transport must be an object
with a coroutine `call(request)`. The first transport is chosen at random.

After a failure or timeout it moves on to the next transport and waits with
randomised exponential back-off. Once `max_elapsed` seconds have passed, it
re-raises the last error. An empty list of transports raises `ValueError`.

## What the package does not do

- There is no command-line program. Start the proxy from Python with `run` or
  `ProxyServer.handle`.
- The package does not supply a SOCKS5 server, tunnel or bridge. `proxy` only
  forwards to one that is already running.
- There is no account login, token handling, exit or bridge selection, or
  syncing with a directory service.
- `MultiTransport` is given ready-made transports. The package includes no
  RPC transport of its own.
- The HTTP proxy does not support proxy authentication, and it does not
  stream response bodies. Each response is buffered whole before it is sent
  on.