"""
SignNet: lightweight MLP for static sign classification.

Architecture:
    Input  : 200 features (from SignFeatureExtractor)
    FC1    : 128 units, BatchNorm, ReLU, Dropout(0.3)
    FC2    : 64 units, BatchNorm, ReLU, Dropout(0.2)
    Output : num_classes (softmax applied in predict_proba)

Class indices follow the key order of the sign dictionary the model was
trained against.
"""

import logging
import os

import numpy as np

from signlens.core.errors import ModelUnavailable
from signlens.models.feature_extractor import EXPECTED_FEATURE_LENGTH

logger = logging.getLogger(__name__)

try:
    import torch
    import torch.nn as nn
    TORCH_AVAILABLE = True
except ImportError:
    TORCH_AVAILABLE = False
    logger.debug("PyTorch not available, SignNet disabled")


def _check_torch():
    if not TORCH_AVAILABLE:
        raise ModelUnavailable("PyTorch is required for SignNet (pip install torch)")


if TORCH_AVAILABLE:

    class SignNet(nn.Module):
        """Small MLP mapping a 200-d feature vector to sign-class logits."""

        def __init__(self, input_dim=EXPECTED_FEATURE_LENGTH, num_classes=32,
                     dropout1=0.3, dropout2=0.2):
            super().__init__()
            self.input_dim = input_dim
            self.num_classes = num_classes

            self.features = nn.Sequential(
                nn.Linear(input_dim, 128),
                nn.BatchNorm1d(128),
                nn.ReLU(inplace=True),
                nn.Dropout(dropout1),

                nn.Linear(128, 64),
                nn.BatchNorm1d(64),
                nn.ReLU(inplace=True),
                nn.Dropout(dropout2),
            )
            self.classifier = nn.Linear(64, num_classes)
            self._init_weights()

        def _init_weights(self):
            for m in self.modules():
                if isinstance(m, nn.Linear):
                    nn.init.kaiming_normal_(m.weight, nonlinearity="relu")
                    if m.bias is not None:
                        nn.init.zeros_(m.bias)
                elif isinstance(m, nn.BatchNorm1d):
                    nn.init.ones_(m.weight)
                    nn.init.zeros_(m.bias)

        def forward(self, x):
            """Raw logits of shape (batch, num_classes)."""
            return self.classifier(self.features(x))

        def predict_proba(self, x):
            """Softmax probabilities, shape (batch, num_classes)."""
            self.eval()
            with torch.no_grad():
                return torch.softmax(self.forward(x), dim=1)

        def save_checkpoint(self, path):
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            torch.save({
                "model_state_dict": self.state_dict(),
                "num_classes": self.num_classes,
                "input_dim": self.input_dim,
            }, path)
            logger.info("SignNet checkpoint saved to %s", path)

        @classmethod
        def load_checkpoint(cls, path, device="cpu"):
            """Load a trained model in eval mode.

            Accepts either a full checkpoint dict or a raw state_dict.
            """
            checkpoint = torch.load(path, map_location=device)

            if isinstance(checkpoint, dict) and "model_state_dict" in checkpoint:
                state_dict = checkpoint["model_state_dict"]
                num_classes = checkpoint.get("num_classes")
                input_dim = checkpoint.get("input_dim", EXPECTED_FEATURE_LENGTH)
            else:
                state_dict = checkpoint
                num_classes = None
                input_dim = EXPECTED_FEATURE_LENGTH
            if num_classes is None:
                num_classes = state_dict["classifier.weight"].shape[0]

            model = cls(input_dim=input_dim, num_classes=num_classes)
            model.load_state_dict(state_dict)
            model.to(device)
            model.eval()
            logger.info("Loaded SignNet (%d classes) from %s", num_classes, path)
            return model

else:
    class SignNet:
        """Placeholder raising ModelUnavailable when PyTorch is missing."""
        def __init__(self, *args, **kwargs):
            _check_torch()


class TorchSignModel:
    """Adapter exposing ``predict_proba(features) -> np.ndarray`` for SignNet.

    Raises:
        ModelUnavailable: torch missing, or the checkpoint cannot be loaded.
    """

    def __init__(self, model_path: str, device: str = None):
        _check_torch()
        if not os.path.isfile(model_path):
            raise ModelUnavailable("No trained sign model at %s" % model_path)

        self._device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        try:
            self._model = SignNet.load_checkpoint(model_path, device=self._device)
        except (OSError, RuntimeError, KeyError) as e:
            raise ModelUnavailable("Failed to load %s: %s" % (model_path, e)) from e

    @property
    def num_classes(self) -> int:
        return self._model.num_classes

    def predict_proba(self, features: np.ndarray) -> np.ndarray:
        tensor = torch.from_numpy(np.asarray(features, dtype=np.float32)).unsqueeze(0)
        probs = self._model.predict_proba(tensor.to(self._device))
        return probs.cpu().numpy().squeeze(0)
