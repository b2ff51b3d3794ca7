"""
Image utility functions
"""

import cv2
import numpy as np
from PIL import Image

RESAMPLE_FILTERS = {
    'nearest': Image.Resampling.NEAREST,
    'bilinear': Image.Resampling.BILINEAR,
    'bicubic': Image.Resampling.BICUBIC,
    'lanczos': Image.Resampling.LANCZOS,
    'box': Image.Resampling.BOX,
}


def analysis_height(width: int, height: int, target_width: int) -> int:
    """Height that keeps the aspect ratio at `target_width` (never below 1)"""
    return max(1, int(height * (target_width / width)))


def resize_to_width(image: np.ndarray, target_width: int) -> np.ndarray:
    """Resize an OpenCV image to a fixed width maintaining aspect ratio"""
    h, w = image.shape[:2]
    new_h = analysis_height(w, h, target_width)

    # Area interpolation for shrinking, linear when enlarging small images
    interpolation = cv2.INTER_AREA if target_width < w else cv2.INTER_LINEAR
    return cv2.resize(image, (target_width, new_h), interpolation=interpolation)


def resample_filter(name: str) -> Image.Resampling:
    """Map a config filter name to a Pillow resampling filter"""
    try:
        return RESAMPLE_FILTERS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown resample filter: {name}") from None
