import io

import numpy as np
import pytest
from PIL import Image

from core.models import MediaKind, MediaRecord, PixelBuffer


def encode_png(pixels: np.ndarray) -> bytes:
    """Losslessly encode an RGB uint8 array"""
    out = io.BytesIO()
    Image.fromarray(pixels).save(out, format='PNG')
    return out.getvalue()


def scene_pixels(width: int = 900, height: int = 800, seed: int = 0,
                 offset: int = 0, mirror: bool = False) -> np.ndarray:
    """
    A textured scene built from a coarse 9x8 block layout.

    Adjacent blocks differ strongly, so the difference hash is stable under
    small brightness changes, while the per-pixel noise keeps the image
    sharp enough to be kept.
    """
    rows, cols = np.mgrid[0:8, 0:9]
    coarse = 60 + ((7 * cols + 3 * rows) % 9) * 16
    blocks = np.kron(coarse, np.ones((height // 8 + 1, width // 9 + 1)))[:height, :width]

    rng = np.random.default_rng(seed)
    noise = rng.integers(-50, 51, size=(height, width))
    gray = blocks + noise + offset
    if mirror:
        gray = gray[:, ::-1]

    gray = np.clip(gray, 0, 255).astype(np.uint8)
    return np.stack([gray, gray, gray], axis=-1)


def rgba_buffer(rgb: np.ndarray, source_width: int = None, source_height: int = None) -> PixelBuffer:
    height, width = rgb.shape[:2]
    alpha = np.full((height, width, 1), 255, dtype=np.uint8)
    return PixelBuffer(
        np.concatenate([rgb.astype(np.uint8), alpha], axis=-1),
        source_width or width,
        source_height or height,
    )


def make_record(record_id: str, content=b'', filename: str = None,
                size_bytes: int = 500_000, timestamp: float = 0.0,
                kind: MediaKind = MediaKind.IMAGE) -> MediaRecord:
    return MediaRecord(
        id=record_id,
        kind=kind,
        size_bytes=size_bytes,
        filename=filename or f"{record_id}.png",
        timestamp=timestamp,
        content=content,
    )


@pytest.fixture
def noise_png():
    """A sharp, mid-exposure 640x480 image"""
    rng = np.random.default_rng(42)
    return encode_png(rng.integers(0, 256, size=(480, 640, 3), dtype=np.uint8))


@pytest.fixture
def flat_png():
    """A featureless gray image"""
    return encode_png(np.full((480, 640, 3), 128, dtype=np.uint8))
