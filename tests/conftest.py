"""
Shared fixtures: synthetic hands, fake detectors and a controllable clock.
"""

import threading

import numpy as np
import pytest

from signlens.core.types import LandmarkFrame
from signlens.modules.detection.base import HandDetectorBackend
from signlens.modules.recognition.sign_dictionary import load_default_dictionaries

FINGERS = ("index", "middle", "ring", "pinky")


def make_hand(extended=(), spacing=0.03, origin=(0.5, 0.7), handedness="Right",
              image_size=None):
    """Build a right hand with the given fingers extended.

    Extended fingers are straight vertical chains; curled fingers bend
    90 degrees at both joints (into -z). The wrist sits at ``origin``
    and the hand size (wrist to middle MCP) is 0.10.
    """
    x0, y0 = origin
    points = np.zeros((21, 3), dtype=np.float32)
    points[0] = (x0, y0, 0.0)

    # Thumb: CMC, MCP along a diagonal, then straight or bent
    d = np.array([-0.04, -0.03, 0.0])
    wrist = points[0].astype(np.float64)
    points[1] = wrist + d
    points[2] = wrist + 2 * d
    if "thumb" in extended:
        points[3] = wrist + 3 * d
        points[4] = wrist + 4 * d
    else:
        points[3] = points[2] + (0.0, 0.0, -0.03)
        points[4] = points[3] + (0.03, 0.0, 0.0)

    for i, finger in enumerate(FINGERS):
        x = x0 + (i - 1) * spacing
        base = 5 + 4 * i
        points[base] = (x, y0 - 0.10, 0.0)
        points[base + 1] = (x, y0 - 0.15, 0.0)
        if finger in extended:
            points[base + 2] = (x, y0 - 0.19, 0.0)
            points[base + 3] = (x, y0 - 0.23, 0.0)
        else:
            points[base + 2] = (x, y0 - 0.15, -0.04)
            points[base + 3] = (x, y0 - 0.12, -0.04)

    if image_size is not None:
        points[:, 0] *= image_size[0]
        points[:, 1] *= image_size[1]
    return LandmarkFrame(points, handedness, 0.95, image_size)


def make_fist(wrist=(0.5, 0.6), image_size=None, handedness="Right"):
    """Closed fist: every landmark within a few hundredths of the wrist."""
    points = np.zeros((21, 3), dtype=np.float32)
    for i in range(21):
        points[i] = (wrist[0] + 0.002 * i, wrist[1] - 0.001 * i, 0.0)
    if image_size is not None:
        points[:, 0] = wrist[0] + (points[:, 0] - wrist[0]) * image_size[0]
        points[:, 1] = wrist[1] + (points[:, 1] - wrist[1]) * image_size[1]
    return LandmarkFrame(points, handedness, 0.9, image_size)


def wave_frames(n=5, start_x=100.0, end_x=170.0, y=240.0):
    """Pixel-space fists on a 640x480 frame moving laterally."""
    xs = np.linspace(start_x, end_x, n)
    return [[make_fist(wrist=(x, y + (5 if i % 2 else -5)), image_size=(640, 480))]
            for i, x in enumerate(xs)]


class ScriptedDetector(HandDetectorBackend):
    """Returns queued results, repeating the last one when exhausted."""

    name = "scripted"

    def __init__(self, results=None, error=None):
        self._results = list(results or [[]])
        self._error = error
        self.calls = 0
        self.initialized = False
        self.closed = False

    def initialize(self):
        self.initialized = True

    def detect_hands(self, frame):
        self.calls += 1
        if self._error is not None:
            raise self._error
        if len(self._results) > 1:
            return self._results.pop(0)
        return self._results[0]

    def close(self):
        self.closed = True


class BlockingDetector(HandDetectorBackend):
    """Blocks inside detect_hands until released."""

    name = "blocking"

    def __init__(self, hands):
        self._hands = hands
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def detect_hands(self, frame):
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=5)
        return self._hands


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def dictionaries():
    return load_default_dictionaries()


@pytest.fixture
def clock():
    return FakeClock(100.0)
