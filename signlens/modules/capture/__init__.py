"""Frame decoding and encoding."""
from .frame_processor import FrameDecodeError, FrameProcessor

__all__ = ["FrameDecodeError", "FrameProcessor"]
