# protocol/__init__.py

# Core classes
from .core import Frame, FrameParser, StatusMessage, CommandMessage, decode_frame

__all__ = [
    "Frame", "FrameParser", "StatusMessage", "CommandMessage", "decode_frame"]
