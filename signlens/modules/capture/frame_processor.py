"""
Frame decoding for detector backends.

The pipeline accepts an opaque frame reference per call. Detectors
need a BGR/RGB array (MediaPipe) or an encoded image (cloud API);
this module converts between the two.

Accepted frame references:
    - np.ndarray           BGR image (H, W, 3), as read by OpenCV
    - bytes / bytearray    encoded image (JPEG, PNG, ...)
    - str / os.PathLike    file path or file:// URI
    - dict                 {"uri": ...} or {"base64": ...}
"""

import base64
import logging
import os
from urllib.parse import urlparse, unquote

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class FrameDecodeError(ValueError):
    """The frame reference could not be turned into an image."""


class FrameProcessor:
    """Converts frame references into arrays or encoded payloads."""

    def __init__(self, jpeg_quality: int = 80):
        self._jpeg_quality = int(jpeg_quality)

    def to_bgr(self, frame) -> np.ndarray:
        """Decode any accepted frame reference into a BGR uint8 array."""
        if isinstance(frame, np.ndarray):
            return self._check_array(frame)

        if isinstance(frame, dict):
            if "base64" in frame:
                return self._decode_bytes(base64.b64decode(frame["base64"]))
            if "uri" in frame:
                return self._read_path(self._uri_to_path(frame["uri"]))
            raise FrameDecodeError("Frame dict needs a 'uri' or 'base64' key")

        if isinstance(frame, (bytes, bytearray, memoryview)):
            return self._decode_bytes(bytes(frame))

        if isinstance(frame, (str, os.PathLike)):
            return self._read_path(self._uri_to_path(os.fspath(frame)))

        raise FrameDecodeError("Unsupported frame type: %s" % type(frame).__name__)

    def to_rgb(self, frame) -> np.ndarray:
        """Decode a frame reference and convert BGR -> RGB."""
        bgr = self.to_bgr(frame)
        return np.ascontiguousarray(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))

    def to_jpeg_base64(self, frame) -> str:
        """Encode a frame as base64 JPEG for remote APIs.

        Already-encoded bytes are passed through untouched.
        """
        if isinstance(frame, dict) and "base64" in frame:
            return frame["base64"]
        if isinstance(frame, (bytes, bytearray, memoryview)):
            return base64.b64encode(bytes(frame)).decode("ascii")

        bgr = self.to_bgr(frame)
        ok, buf = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), self._jpeg_quality])
        if not ok:
            raise FrameDecodeError("JPEG encoding failed")
        return base64.b64encode(buf.tobytes()).decode("ascii")

    @staticmethod
    def frame_size(image: np.ndarray) -> tuple:
        """(width, height) of a decoded image."""
        height, width = image.shape[:2]
        return width, height

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_array(image: np.ndarray) -> np.ndarray:
        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        if image.ndim != 3 or image.shape[2] not in (3, 4):
            raise FrameDecodeError("Expected (H, W, 3) image, got %s" % str(image.shape))
        if image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        if image.dtype != np.uint8:
            image = np.clip(image, 0, 255).astype(np.uint8)
        return image

    @staticmethod
    def _decode_bytes(data: bytes) -> np.ndarray:
        buf = np.frombuffer(data, dtype=np.uint8)
        image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
        if image is None:
            raise FrameDecodeError("Could not decode %d image bytes" % len(data))
        return image

    @staticmethod
    def _uri_to_path(uri: str) -> str:
        parsed = urlparse(uri)
        if parsed.scheme == "file":
            return unquote(parsed.path)
        if parsed.scheme in ("http", "https"):
            raise FrameDecodeError("Remote frame URIs are not fetched: %s" % uri)
        return uri

    @staticmethod
    def _read_path(path: str) -> np.ndarray:
        image = cv2.imread(path, cv2.IMREAD_COLOR)
        if image is None:
            raise FrameDecodeError("Could not read image file: %s" % path)
        return image
