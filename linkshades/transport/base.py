from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Transport(ABC):
    """
    Abstract byte-stream transport for one device connection.

    Contract:
      - open()/close() manage the underlying connection; close() is idempotent.
      - read(n) returns 1..n bytes, or b"" when no data arrived within the
        transport's poll interval. End of stream raises TransportClosed.
      - write(data) writes all of `data` and returns the number of bytes written.
        It is safe to call from several threads.
      - flush() forces pending output to be transmitted.
    """

    #: Human-readable peer label used in log lines.
    peer: str = "-"

    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def read(self, n: int) -> bytes: ...

    @abstractmethod
    def write(self, data: bytes) -> int: ...

    @abstractmethod
    def flush(self) -> None: ...

    @property
    @abstractmethod
    def is_open(self) -> bool: ...

    def __enter__(self) -> "Transport":
        self.open()
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()
