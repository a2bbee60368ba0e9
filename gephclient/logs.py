"""A bounded in-memory buffer holding the most recent log output."""

from __future__ import annotations

from collections import deque


class LogBuffer:
    """Keeps the last ``mem_limit`` characters of logged lines."""

    def __init__(self, mem_limit: int) -> None:
        if mem_limit < 0:
            raise ValueError(f"memory limit must not be negative: {mem_limit}")
        self.mem_limit = mem_limit
        self._chars: deque[str] = deque(maxlen=mem_limit)

    def add_line(self, line: str) -> None:
        """Append a line; the oldest characters are dropped once over the limit."""
        self._chars.extend(line)
        self._chars.append("\n")

    def get_logs(self) -> str:
        """All retained text, oldest first."""
        return "".join(self._chars)