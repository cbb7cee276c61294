"""Abstract logger interface.

Implementations accept a message plus arbitrary keyword context so that
log lines stay structured regardless of the output format.
"""

from abc import ABC, abstractmethod
from typing import Any


class Logger(ABC):
    """Minimal structured logging interface used throughout mathgen."""

    @abstractmethod
    def debug(self, message: str, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def info(self, message: str, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def warning(self, message: str, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def error(self, message: str, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def critical(self, message: str, **kwargs: Any) -> None:
        pass
