# core/pixel_source.py

import io
import logging
from typing import Optional

import cv2
import numpy as np
from PIL import Image, ImageOps

from core.exceptions import DecodeError
from core.models import MediaRecord, PixelBuffer
from utils.image_utils import analysis_height, resize_to_width

logger = logging.getLogger(__name__)


class PixelSource:
    """
    Decodes raw bytes into an RGBA pixel buffer.

    Implementations raise DecodeError for corrupt or unsupported input and
    never let decoder-specific exceptions escape.
    """

    def decode(self, data: bytes, target_width: Optional[int] = None) -> PixelBuffer:
        raise NotImplementedError


class PillowPixelSource(PixelSource):
    """
    Pillow decoder; applies EXIF orientation and downsamples with a fixed filter
    """

    def __init__(self,
                 resample: Image.Resampling = Image.Resampling.BILINEAR,
                 max_image_pixels: int = 100_000_000):
        self.resample = resample

        # Set PIL image size limit to prevent memory issues
        Image.MAX_IMAGE_PIXELS = max_image_pixels

    def decode(self, data: bytes, target_width: Optional[int] = None) -> PixelBuffer:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img = ImageOps.exif_transpose(img)
                source_width, source_height = img.size
                if source_width == 0 or source_height == 0:
                    raise DecodeError("Image has no pixels")

                rgba = img.convert('RGBA')
                if target_width:
                    target_height = analysis_height(source_width, source_height, target_width)
                    rgba = rgba.resize((target_width, target_height), self.resample)

                # Copy out so the full-resolution image can be released right away
                pixels = np.array(rgba, dtype=np.uint8)
        except DecodeError:
            raise
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Cannot decode image: {e}") from e

        return PixelBuffer(pixels, source_width, source_height)


class OpenCVPixelSource(PixelSource):
    """
    OpenCV decoder; faster on large JPEGs
    """

    def decode(self, data: bytes, target_width: Optional[int] = None) -> PixelBuffer:
        try:
            buffer = np.frombuffer(data, dtype=np.uint8)
            img = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        except cv2.error as e:
            raise DecodeError(f"Cannot decode image: {e}") from e

        if img is None:
            raise DecodeError("Cannot decode image: unsupported or corrupt data")

        source_height, source_width = img.shape[:2]
        if target_width:
            img = resize_to_width(img, target_width)

        pixels = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
        return PixelBuffer(pixels, source_width, source_height)


def create_pixel_source(name: str = "pillow", max_image_pixels: int = 100_000_000) -> PixelSource:
    """Create a pixel source by config name"""
    if name == "pillow":
        return PillowPixelSource(max_image_pixels=max_image_pixels)
    if name == "opencv":
        return OpenCVPixelSource()
    raise ValueError(f"Unknown decoder: {name}")


def load_pixels(record: MediaRecord,
                pixel_source: PixelSource,
                target_width: Optional[int] = None) -> PixelBuffer:
    """
    Read a record's content and decode it.

    IO failures are reported as DecodeError, the same as corrupt data.
    """
    try:
        data = record.read_bytes()
    except OSError as e:
        raise DecodeError(f"Cannot read {record.filename}: {e}") from e

    logger.debug("Decoding %s (%d bytes)", record.filename, len(data))
    return pixel_source.decode(data, target_width)
