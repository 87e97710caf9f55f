"""
SignLens - real-time sign-language recognition
===============================================

Detect hand keypoints in a live frame sequence, classify them into
alphabet letters, words, phrases or motion signs, and report the result
in the active sign language.

Packages:
    - core: shared types, errors, event bus, recognition pipeline
    - models: feature extraction, SignNet, static classifier strategies
    - modules.capture: frame decoding
    - modules.detection: detector backends, fallback chain, tracking buffer
    - modules.recognition: rules, dynamic gestures, sign dictionaries
    - modules.utils: config, logging, quota, performance monitoring
"""

__version__ = "1.0.0"
