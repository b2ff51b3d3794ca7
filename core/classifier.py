# core/classifier.py

from typing import Optional

from core.models import Category, ClassificationResult, MediaKind, VisualFeatures
from config import ClassificationConfig

_DEFAULT_CONFIG = ClassificationConfig()


def classify_metadata(filename: str,
                      size_bytes: int,
                      kind: MediaKind = MediaKind.IMAGE,
                      config: Optional[ClassificationConfig] = None) -> Optional[ClassificationResult]:
    """
    Rules that need no decoding.

    Returns None when an image passes every metadata check and a visual
    check is needed. Videos always get a final answer here.
    """
    config = config or _DEFAULT_CONFIG
    name = filename.lower()

    if kind == MediaKind.VIDEO:
        if config.screen_recording_marker in name:
            return ClassificationResult(
                Category.DISCARD, 85, "Screen Recording Detected", ("Video",)
            )
        return ClassificationResult(Category.KEEP, 85, "Video content", ("Video",))

    if any(marker in name for marker in config.screenshot_markers):
        return ClassificationResult(
            Category.DISCARD, 98, "Filename indicates a screenshot", ("Screenshot",)
        )

    if size_bytes < config.small_file_bytes:
        return ClassificationResult(
            Category.DISCARD, 85, "Low resolution (small file size)", ("Small",)
        )

    return None


def classify_visual(features: VisualFeatures,
                    config: Optional[ClassificationConfig] = None) -> ClassificationResult:
    """Rules that need decoded pixels"""
    config = config or _DEFAULT_CONFIG

    ratio = features.aspect_ratio
    if ratio < config.min_aspect_ratio or ratio > config.max_aspect_ratio:
        return ClassificationResult(Category.DISCARD, 80, "Unusual aspect ratio", ("Aspect",))

    if features.raw_sharpness < config.blur_threshold:
        return ClassificationResult(Category.DISCARD, 75, "Image appears blurry", ("Blurry",))

    return ClassificationResult(Category.KEEP, 65, "Standard image resolution", ("Image",))


def classify(filename: str,
             size_bytes: int,
             kind: MediaKind = MediaKind.IMAGE,
             features: Optional[VisualFeatures] = None,
             config: Optional[ClassificationConfig] = None) -> ClassificationResult:
    """
    Classify a record from its metadata and, when available, its visual
    features. The first matching rule wins:

    1. screenshot filename
    2. small file size
    3. unusual aspect ratio (features)
    4. blurry (features)
    5. keep

    Without features, rules 3 and 4 are skipped.
    """
    result = classify_metadata(filename, size_bytes, kind, config)
    if result is not None:
        return result

    if features is None:
        return ClassificationResult(Category.KEEP, 65, "Standard image resolution", ("Image",))

    return classify_visual(features, config)
