"""HTTP-to-SOCKS5 proxy, SOCKS5 codecs, and log, debug-store, cache, metrics and fail-over utilities."""

__version__ = "0.1.0"