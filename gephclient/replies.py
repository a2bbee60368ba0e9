"""SOCKS5 protocol constants, reply codes and the protocol error type."""

from __future__ import annotations

from enum import IntEnum

SOCKS5_VERSION = 0x05

AUTH_METHOD_NONE = 0x00

CMD_TCP_CONNECT = 0x01

ADDR_TYPE_IPV4 = 0x01
ADDR_TYPE_DOMAIN_NAME = 0x03
ADDR_TYPE_IPV6 = 0x04


class Reply(IntEnum):
    """Reply codes a SOCKS5 server sends in answer to a request."""

    SUCCEEDED = 0x00
    GENERAL_FAILURE = 0x01
    CONNECTION_NOT_ALLOWED = 0x02
    NETWORK_UNREACHABLE = 0x03
    HOST_UNREACHABLE = 0x04
    CONNECTION_REFUSED = 0x05
    TTL_EXPIRED = 0x06
    COMMAND_NOT_SUPPORTED = 0x07
    ADDRESS_TYPE_NOT_SUPPORTED = 0x08

    @classmethod
    def from_code(cls, code: int) -> Reply | int:
        """Return the known reply for ``code``, or the raw code if it is unknown."""
        try:
            return cls(code)
        except ValueError:
            return code

    @property
    def message(self) -> str:
        return _MESSAGES[self]

    def __str__(self) -> str:
        return self.message


_MESSAGES = {
    Reply.SUCCEEDED: "Succeeded",
    Reply.GENERAL_FAILURE: "General failure",
    Reply.CONNECTION_NOT_ALLOWED: "Connection not allowed",
    Reply.NETWORK_UNREACHABLE: "Network unreachable",
    Reply.HOST_UNREACHABLE: "Host unreachable",
    Reply.CONNECTION_REFUSED: "Connection refused",
    Reply.TTL_EXPIRED: "TTL expired",
    Reply.COMMAND_NOT_SUPPORTED: "Command not supported",
    Reply.ADDRESS_TYPE_NOT_SUPPORTED: "Address type not supported",
}


def reply_message(code: int) -> str:
    """Human-readable text for a reply code, known or not."""
    if not 0 <= int(code) <= 0xFF:
        raise ValueError(f"reply code out of range: {code}")
    reply = Reply.from_code(int(code))
    if isinstance(reply, Reply):
        return reply.message
    return f"Other reply ({reply})"


class Socks5Error(OSError):
    """A SOCKS5 protocol failure, carrying the reply code that describes it."""

    def __init__(self, reply: Reply | int, message: str) -> None:
        super().__init__(message)
        self.reply = reply
        self.message = message

    def __str__(self) -> str:
        return self.message