"""
Tests for the hand -> feature vector pipeline
==============================================
"""

import numpy as np
import pytest

from conftest import make_fist, make_hand
from signlens.models.feature_extractor import (
    EXPECTED_FEATURE_LENGTH, FEATURES_PER_HAND, SignFeatureExtractor,
    extract_batch, extract_features,
)


class TestExtractFeatures:

    def test_per_hand_layout_size(self):
        assert FEATURES_PER_HAND == 76

    def test_zero_hands_is_all_zero(self):
        features = extract_features([])
        assert features.shape == (EXPECTED_FEATURE_LENGTH,)
        assert features.dtype == np.float32
        assert not features.any()

    def test_one_hand_padded(self):
        features = extract_features([make_hand(extended=("index",))])
        assert features.shape == (EXPECTED_FEATURE_LENGTH,)
        assert not features[FEATURES_PER_HAND:].any()

    def test_two_hands_concatenated(self):
        left = make_hand(extended=("index",), handedness="Left")
        right = make_hand(extended=("pinky",))
        features = extract_features([left, right])
        assert features[FEATURES_PER_HAND - 1] == 0.0   # Left
        assert features[2 * FEATURES_PER_HAND - 1] == 1.0  # Right
        assert not features[2 * FEATURES_PER_HAND:].any()

    def test_third_hand_ignored(self):
        hands = [make_hand(), make_hand(), make_hand(extended=("index",))]
        np.testing.assert_array_equal(extract_features(hands), extract_features(hands[:2]))

    def test_wrist_to_tip_distances(self):
        hand = make_hand(extended=("index", "middle", "ring", "pinky"), spacing=0.0)
        features = extract_features([hand])
        # Extended fingers end 0.23 above the wrist, straight up with zero spacing
        assert features[1] == pytest.approx(0.23, abs=1e-5)   # index
        assert features[2] == pytest.approx(0.23, abs=1e-5)   # middle

    def test_tip_pair_distances(self):
        hand = make_hand(extended=("index", "middle", "ring", "pinky"), spacing=0.03)
        features = extract_features([hand])
        # index-middle, middle-ring, ring-pinky
        np.testing.assert_allclose(features[9:12], [0.03, 0.03, 0.03], atol=1e-5)

    def test_landmarks_min_max_normalized(self):
        features = extract_features([make_hand(extended=("thumb", "index"))])
        coords = features[12:75].reshape(21, 3)
        assert coords[:, 0].min() == pytest.approx(0.0)
        assert coords[:, 0].max() == pytest.approx(1.0)
        assert coords[:, 1].min() == pytest.approx(0.0)
        assert coords[:, 1].max() == pytest.approx(1.0)

    def test_z_passthrough(self):
        hand = make_hand(extended=())
        coords = extract_features([hand])[12:75].reshape(21, 3)
        np.testing.assert_allclose(coords[:, 2], hand.landmarks[:, 2])

    def test_zero_span_divides_by_one(self):
        points = np.zeros((21, 3), dtype=np.float32)
        points[:, 0] = 0.4
        points[:, 1] = np.linspace(0.1, 0.5, 21)
        from signlens.core.types import LandmarkFrame
        coords = extract_features([LandmarkFrame(points)])[12:75].reshape(21, 3)
        assert not coords[:, 0].any()
        assert np.isfinite(coords).all()

    def test_pixel_and_normalized_input_agree(self):
        normalized = make_fist(wrist=(0.5, 0.5))
        pixel = make_fist(wrist=(320.0, 240.0), image_size=(640, 480))
        np.testing.assert_allclose(extract_features([normalized]),
                                   extract_features([pixel]), atol=1e-5)

    def test_truncated_to_expected_length(self):
        features = extract_features([make_hand(), make_hand()], expected_length=100)
        assert features.shape == (100,)

    def test_deterministic(self):
        hand = make_hand(extended=("index", "middle"))
        np.testing.assert_array_equal(extract_features([hand]), extract_features([hand]))


class TestExtractBatch:

    def test_batch_shape(self):
        batch = extract_batch([[make_fist()], [], [make_hand(), make_hand()]])
        assert batch.shape == (3, EXPECTED_FEATURE_LENGTH)
        assert not batch[1].any()

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            SignFeatureExtractor(0)
