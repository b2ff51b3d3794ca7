# core/perceptual_hash.py

"""
Difference hash (dHash) for near-duplicate detection.

The image is resampled to a 9x8 grid and each of the 8 adjacent pairs per
row yields one bit (1 when the left pixel is brighter). Bits are laid out
row-major, so the 64-bit integer form has grid position (0, 0) as its most
significant bit.

Hashes are taken from the analysis-width buffer, so two hashes are only
comparable when both used the same `analysis_width` and resampling filter.
"""

import imagehash
import numpy as np
from PIL import Image

from core.models import PixelBuffer

HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE


def dhash_from_grid(grid: np.ndarray) -> imagehash.ImageHash:
    """Hash an 8-row x 9-column luma grid"""
    grid = np.asarray(grid, dtype=np.float64)
    if grid.shape != (HASH_SIZE, HASH_SIZE + 1):
        raise ValueError(f"Expected an 8x9 grid, got shape {grid.shape}")

    bits = grid[:, :-1] > grid[:, 1:]
    return imagehash.ImageHash(bits)


def compute_dhash(buffer: PixelBuffer,
                  resample: Image.Resampling = Image.Resampling.BILINEAR) -> imagehash.ImageHash:
    """
    Compute the 64-bit difference hash of a decoded image.

    The grid is always built with the same filter (bilinear by default) so
    hashes stay comparable across runs.
    """
    rgb = Image.fromarray(buffer.pixels).convert('RGB')
    small = rgb.resize((HASH_SIZE + 1, HASH_SIZE), resample)

    channels = np.asarray(small, dtype=np.float64)
    grid = channels.sum(axis=2) / 3.0
    return dhash_from_grid(grid)


def hamming_distance(hash1: imagehash.ImageHash, hash2: imagehash.ImageHash) -> int:
    """Number of differing bits; raises TypeError for hashes of different shape"""
    return int(hash1 - hash2)


def hash_to_int(image_hash: imagehash.ImageHash) -> int:
    return int(str(image_hash), 16)


def hash_from_int(value: int) -> imagehash.ImageHash:
    if not 0 <= value < 2 ** HASH_BITS:
        raise ValueError(f"Hash value out of 64-bit range: {value}")
    return imagehash.hex_to_hash(f"{value:016x}")
