"""
ML models package for static sign classification.

Provides:
    - SignFeatureExtractor: detected hands -> 200-d feature vector
    - SignNet: lightweight MLP over the feature vector
    - ModelSignClassifier: learned-model strategy
    - create_static_classifier: model-first strategy selection
"""

__all__ = [
    "SignFeatureExtractor",
    "SignNet",
    "ModelSignClassifier",
    "create_static_classifier",
]
