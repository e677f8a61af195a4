"""
OpenCV color histograms of frame regions.

HistogramExtractor is the default histogram source of PositionParticleFilter:
it cuts the region of a particle out of the frame, converts it to the
configured color space and bins all three channels jointly with
cv2.calcHist. Every histogram it returns is flattened to num_bins^3 values
and sums to 1, so histograms from the same extractor can be compared with
any metric of pftrack.distance.
"""

import logging
from typing import Optional

import cv2
import numpy as np
from numpy.typing import NDArray

from .distance import DistanceMetric, MetricLike, distance
from .types import COLOR_SPACES, DEFAULT_COLOR_SPACE, MIN_PATCH_SIZE, Frame, Histogram, Region

logger = logging.getLogger(__name__)

# (cvtColor code, calcHist ranges); OpenCV stores 8-bit hue as 0..179
_COLOR_SPACE_SETTINGS = {
    'HSV': (cv2.COLOR_BGR2HSV, [0, 180, 0, 256, 0, 256]),
    'LAB': (cv2.COLOR_BGR2LAB, [0, 256, 0, 256, 0, 256]),
    'RGB': (cv2.COLOR_BGR2RGB, [0, 256, 0, 256, 0, 256]),
}


def normalize_histogram(hist: NDArray) -> Histogram:
    """
    Scale a histogram to unit sum as a flat float32 array.

    A histogram without mass becomes the uniform distribution.

    Raises:
        ValueError: If the histogram is None or empty
    """
    if hist is None or np.asarray(hist).size == 0:
        raise ValueError("Cannot normalize an empty histogram")

    flat = np.asarray(hist, dtype=np.float32).ravel()
    mass = float(flat.sum())
    if mass == 0.0:
        return np.full(flat.size, 1.0 / flat.size, dtype=np.float32)
    return flat / np.float32(mass)


class HistogramExtractor:
    """
    Joint 3-channel color histograms with a fixed bin layout.

    Regions are (x, y, width, height) with (x, y) the centre, matching
    ParticleState.region.
    """

    def __init__(self, num_bins: int = 16, color_space: str = DEFAULT_COLOR_SPACE) -> None:
        """
        Args:
            num_bins: Bins per channel, the histogram has num_bins^3 entries
            color_space: 'HSV', 'RGB' or 'LAB' (case-insensitive)

        Raises:
            ValueError: If num_bins is not positive or the color space is unknown
        """
        if num_bins <= 0:
            raise ValueError(f"Bins per channel must be positive, got {num_bins}")
        if color_space.upper() not in COLOR_SPACES:
            raise ValueError(f"Color space must be one of {COLOR_SPACES}, got {color_space}")

        self.num_bins = num_bins
        self.color_space = color_space.upper()
        self._conversion, self.ranges = _COLOR_SPACE_SETTINGS[self.color_space]

    @property
    def histogram_length(self) -> int:
        return self.num_bins ** 3

    def extract_histogram(self, patch: NDArray[np.uint8]) -> Histogram:
        """
        Normalized joint histogram of a BGR image patch.

        Raises:
            ValueError: If the patch is empty or not a 3-channel image
        """
        if patch is None or patch.size == 0:
            raise ValueError("Cannot extract a histogram from an empty patch")
        if patch.ndim != 3 or patch.shape[2] != 3:
            raise ValueError(f"Expected an (H, W, 3) BGR patch, got shape {patch.shape}")

        converted = cv2.cvtColor(patch, self._conversion)
        counts = cv2.calcHist([converted], [0, 1, 2], None, [self.num_bins] * 3, self.ranges)
        return normalize_histogram(counts)

    def normalize_histogram(self, hist: NDArray) -> Histogram:
        return normalize_histogram(hist)

    def extract_patch(self, frame: Frame, region: Region) -> Optional[NDArray[np.uint8]]:
        """
        Cut a region out of a frame, clipped at the frame border.

        Returns:
            The patch (a view into frame), or None if less than MIN_PATCH_SIZE
            pixels of the region remain on either axis
        """
        rows, cols = frame.shape[:2]
        center_x, center_y, width, height = region
        cx, cy = int(round(center_x)), int(round(center_y))
        half_w, half_h = int(width / 2), int(height / 2)

        left, right = max(0, cx - half_w), min(cols, cx + half_w)
        top, bottom = max(0, cy - half_h), min(rows, cy + half_h)

        if right - left < MIN_PATCH_SIZE or bottom - top < MIN_PATCH_SIZE:
            return None
        return frame[top:bottom, left:right]

    def get_histogram(self, frame: Frame, region: Region) -> Optional[Histogram]:
        """
        Histogram of a frame region, or None if the region is (nearly) off-frame.

        Raises:
            ValueError: If the frame is not a 3-channel image
        """
        if frame is None or frame.ndim != 3:
            raise ValueError("Frame must be an (H, W, 3) image")

        patch = self.extract_patch(frame, region)
        if patch is None:
            logger.debug(f"Region {region} is outside the {frame.shape[1]}x{frame.shape[0]} frame")
            return None
        return self.extract_histogram(patch)

    def compare_histograms(self, hist1: Histogram, hist2: Histogram,
                           metric: MetricLike = DistanceMetric.BHATTACHARYYA) -> float:
        """
        Distance between two histograms under any pftrack.distance metric.

        Raises:
            ValueError: If either histogram is None
            DimensionMismatchError: If the histograms have different lengths
            UnknownMetricError: If the metric is not recognized
        """
        if hist1 is None or hist2 is None:
            raise ValueError("Both histograms are required for a comparison")
        return distance(hist1, hist2, metric)

    def get_config(self) -> dict:
        return {
            'num_bins': self.num_bins,
            'color_space': self.color_space,
            'histogram_length': self.histogram_length,
            'ranges': list(self.ranges),
        }

    def __repr__(self) -> str:
        return f"HistogramExtractor(num_bins={self.num_bins}, color_space='{self.color_space}')"
