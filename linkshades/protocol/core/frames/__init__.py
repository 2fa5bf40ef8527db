# protocol/core/frames/__init__.py

from .base import Frame
from .message import CommandMessage, StatusMessage

__all__ = ["Frame", "StatusMessage", "CommandMessage"]
