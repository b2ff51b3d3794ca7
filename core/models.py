# core/models.py

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from core.exceptions import DecodeError


class MediaKind(str, Enum):
    IMAGE = 'image'
    VIDEO = 'video'


class Category(str, Enum):
    KEEP = 'KEEP'
    DISCARD = 'DISCARD'
    UNSURE = 'UNSURE'
    PENDING = 'PENDING'  # Initial state, never produced by analysis


@dataclass(frozen=True)
class MediaRecord:
    """
    A photo or video handed to the engine by the caller.

    `content` is either the raw bytes or a path to them; the engine only
    borrows it for the duration of a call.
    """
    id: str
    kind: MediaKind
    size_bytes: int
    filename: str
    timestamp: float
    content: Union[bytes, Path] = field(default=b'', repr=False, compare=False)

    @property
    def is_video(self) -> bool:
        return self.kind == MediaKind.VIDEO

    def read_bytes(self) -> bytes:
        """Return the record's byte content"""
        if isinstance(self.content, (str, Path)):
            return Path(self.content).read_bytes()
        return bytes(self.content)


@dataclass(frozen=True)
class PixelBuffer:
    """
    Decoded RGBA pixels at analysis resolution.

    `source_width`/`source_height` keep the original image dimensions, which
    resolution scoring and aspect ratio checks depend on.
    """
    pixels: np.ndarray
    source_width: int
    source_height: int

    def __post_init__(self):
        pixels = self.pixels
        if not isinstance(pixels, np.ndarray) or pixels.ndim != 3 or pixels.shape[2] != 4:
            raise DecodeError("Pixel buffer must be an RGBA array of shape (height, width, 4)")
        if pixels.dtype != np.uint8:
            raise DecodeError(f"Pixel buffer must hold uint8 values, got {pixels.dtype}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise DecodeError("Pixel buffer is empty")
        if self.source_width <= 0 or self.source_height <= 0:
            raise DecodeError(
                f"Invalid source dimensions: {self.source_width}x{self.source_height}"
            )

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


@dataclass(frozen=True)
class VisualFeatures:
    """Raw measurements taken from one decoded image"""
    source_width: int
    source_height: int
    raw_sharpness: float
    exposure: float

    @property
    def aspect_ratio(self) -> float:
        return self.source_width / self.source_height

    @property
    def megapixels(self) -> float:
        return (self.source_width * self.source_height) / 1_000_000


@dataclass(frozen=True)
class QualityScore:
    """Normalized quality of an image; every component lies in [0, 1]"""
    sharpness: float
    exposure: float
    resolution: float
    total: float
    tags: Tuple[str, ...] = ()

    @classmethod
    def zero(cls) -> 'QualityScore':
        return cls(sharpness=0.0, exposure=0.0, resolution=0.0, total=0.0, tags=())


@dataclass(frozen=True)
class ClassificationResult:
    category: Category
    confidence: int
    reason: str
    tags: Tuple[str, ...] = ()

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence must be within [0, 100], got {self.confidence}")

    @classmethod
    def pending(cls) -> 'ClassificationResult':
        return cls(Category.PENDING, 0, "Awaiting analysis")

    @classmethod
    def analysis_failed(cls) -> 'ClassificationResult':
        return cls(Category.UNSURE, 0, "Analysis failed", ("Error",))

    def with_category(self, category: Category) -> 'ClassificationResult':
        """Copy of this result with a user-chosen category"""
        return ClassificationResult(category, self.confidence, self.reason, self.tags)


@dataclass(frozen=True)
class DuplicateGroup:
    """
    Near-duplicate records ranked best first.

    `totals` holds each member's quality total in the same order as
    `member_ids`, so the group can be re-ranked after members are removed.
    """
    group_id: str
    member_ids: Tuple[str, ...]
    best_id: str
    score_gap: float
    totals: Tuple[float, ...] = ()

    def __len__(self) -> int:
        return len(self.member_ids)

    def __contains__(self, record_id) -> bool:
        return record_id in self.member_ids

    def without(self, removed_ids) -> Optional['DuplicateGroup']:
        """
        Return the group minus `removed_ids`, or None when fewer than two
        members would remain.
        """
        kept = [(record_id, total)
                for record_id, total in zip(self.member_ids, self.totals)
                if record_id not in removed_ids]
        if len(kept) < 2:
            return None
        ids, totals = zip(*kept)
        return DuplicateGroup(
            group_id=self.group_id,
            member_ids=tuple(ids),
            best_id=ids[0],
            score_gap=max(0.0, totals[0] - totals[1]),
            totals=tuple(totals),
        )
