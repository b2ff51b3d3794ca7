# core/feature_extractors.py

import logging
from typing import List

import numpy as np

from core.exceptions import DecodeError
from core.models import PixelBuffer, QualityScore, VisualFeatures

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights
BT601_WEIGHTS = np.array([0.299, 0.587, 0.114])

SHARPNESS_WEIGHT = 0.6
EXPOSURE_WEIGHT = 0.2
RESOLUTION_WEIGHT = 0.2


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


def average_luma(pixels: np.ndarray) -> np.ndarray:
    """Unweighted (R+G+B)/3 brightness per pixel"""
    return pixels[..., :3].astype(np.float64).sum(axis=-1) / 3.0


def calculate_sharpness(buffer: PixelBuffer, stride: int = 4) -> float:
    """
    Edge-energy proxy: mean absolute luma step between every `stride`-th
    pixel and the pixel that follows it in raster order.

    Natural photos usually land between 2 and 15.
    """
    luma = average_luma(buffer.pixels).ravel()

    # Only pixels that have a successor are sampled
    sampled = np.arange(0, luma.size - 1, stride)
    if sampled.size == 0:
        return 0.0

    steps = np.abs(luma[sampled] - luma[sampled + 1])
    return float(steps.mean())


def calculate_exposure(buffer: PixelBuffer) -> float:
    """Exposure score: 1.0 at mid-gray average luma, 0 at black or white"""
    rgb = buffer.pixels[..., :3].astype(np.float64)
    avg_luma = float((rgb @ BT601_WEIGHTS).mean())
    return max(0.0, 1 - abs(128 - avg_luma) / 128)


def normalize_sharpness(raw_sharpness: float) -> float:
    # Approx 2.0 to 8.0 mapped to 0-1
    return _clamp((raw_sharpness - 2) / 6)


def normalize_resolution(megapixels: float) -> float:
    # 2MP to 12MP mapped to 0-1
    return _clamp((megapixels - 2) / 10)


class QualityFeatureExtractor:
    """
    Computes sharpness, exposure and resolution for a decoded image and
    combines them into a QualityScore.

    Sharpness dominates the total since it decides the best shot in a burst.
    """

    def __init__(self, sharpness_stride: int = 4):
        self.sharpness_stride = sharpness_stride

    def extract(self, buffer: PixelBuffer) -> VisualFeatures:
        """
        Measure a buffer already downsampled to analysis width.

        Raises:
            DecodeError: if the pixel data cannot be read
        """
        try:
            raw_sharpness = calculate_sharpness(buffer, self.sharpness_stride)
            exposure = calculate_exposure(buffer)
        except (ValueError, TypeError, IndexError) as e:
            raise DecodeError(f"Cannot read pixel buffer: {e}") from e

        return VisualFeatures(
            source_width=buffer.source_width,
            source_height=buffer.source_height,
            raw_sharpness=raw_sharpness,
            exposure=exposure,
        )

    def score(self, features: VisualFeatures) -> QualityScore:
        """Normalize raw features into a weighted QualityScore"""
        sharpness = normalize_sharpness(features.raw_sharpness)
        exposure = _clamp(features.exposure)
        megapixels = features.megapixels
        resolution = normalize_resolution(megapixels)

        total = (sharpness * SHARPNESS_WEIGHT) + \
                (exposure * EXPOSURE_WEIGHT) + \
                (resolution * RESOLUTION_WEIGHT)

        return QualityScore(
            sharpness=sharpness,
            exposure=exposure,
            resolution=resolution,
            total=_clamp(total),
            tags=tuple(self._quality_tags(sharpness, exposure, megapixels)),
        )

    def calculate_quality(self, buffer: PixelBuffer) -> QualityScore:
        """Score a buffer, degrading to a zero score if it cannot be read"""
        try:
            return self.score(self.extract(buffer))
        except DecodeError as e:
            logger.warning("Quality scoring failed: %s", e)
            return QualityScore.zero()

    def _quality_tags(self, sharpness: float, exposure: float,
                      megapixels: float) -> List[str]:
        tags = []
        if sharpness > 0.7:
            tags.append("Very Sharp")
        elif sharpness < 0.3:
            tags.append("Blurry")

        if exposure > 0.8:
            tags.append("Good Exposure")
        elif exposure < 0.4:
            tags.append("Poor Exposure")

        tags.append(f"{megapixels:.1f}MP")
        return tags
