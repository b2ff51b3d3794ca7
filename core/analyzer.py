# core/analyzer.py

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

import imagehash

from config import SystemConfig
from core.classifier import classify_metadata, classify_visual
from core.duplicate_detection import BurstDuplicateDetector, DuplicateCandidate
from core.exceptions import DecodeError
from core.feature_extractors import QualityFeatureExtractor
from core.models import ClassificationResult, DuplicateGroup, MediaRecord, QualityScore, VisualFeatures
from core.perceptual_hash import compute_dhash
from core.pixel_source import PixelSource, create_pixel_source, load_pixels
from utils.image_utils import resample_filter

logger = logging.getLogger(__name__)


class AnalysisCache:
    """
    Per-record analysis results keyed by record id.

    Entries are only written once fully computed; failed analyses are not
    cached so a record can be retried after the upstream problem is fixed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._features: Dict[str, VisualFeatures] = {}
        self._hashes: Dict[str, imagehash.ImageHash] = {}
        self._qualities: Dict[str, QualityScore] = {}

    def lookup(self, record_id: str) -> Optional[Tuple[VisualFeatures, imagehash.ImageHash, QualityScore]]:
        """All cached results for a record, or None"""
        with self._lock:
            if record_id not in self._features:
                return None
            return (self._features[record_id],
                    self._hashes[record_id],
                    self._qualities[record_id])

    def store(self, record_id: str,
              features: VisualFeatures,
              phash: imagehash.ImageHash,
              quality: QualityScore):
        with self._lock:
            self._features[record_id] = features
            self._hashes[record_id] = phash
            self._qualities[record_id] = quality

    def invalidate(self, record_id: str):
        with self._lock:
            self._features.pop(record_id, None)
            self._hashes.pop(record_id, None)
            self._qualities.pop(record_id, None)

    def __contains__(self, record_id) -> bool:
        with self._lock:
            return record_id in self._qualities

    def __len__(self) -> int:
        with self._lock:
            return len(self._qualities)


class MediaAnalyzer:
    """
    Local analysis engine: quality scoring, perceptual hashing,
    classification and burst duplicate detection.

    One decode at analysis width feeds the features, the quality score and
    the hash of a record. Every per-record method is safe to call from
    several threads at once.
    """

    def __init__(self,
                 config: Optional[SystemConfig] = None,
                 pixel_source: Optional[PixelSource] = None,
                 cache: Optional[AnalysisCache] = None):
        self.config = config or SystemConfig()
        analysis = self.config.analysis
        dedup = self.config.duplicate_detection

        if pixel_source is None:
            pixel_source = create_pixel_source(
                analysis.decoder, max_image_pixels=analysis.max_image_pixels
            )
        self.pixel_source = pixel_source
        self.cache = cache if cache is not None else AnalysisCache()
        self.extractor = QualityFeatureExtractor(sharpness_stride=analysis.sharpness_stride)
        self.detector = BurstDuplicateDetector(
            hash_threshold=dedup.hash_threshold,
            window_size=dedup.window_size,
        )
        self.hash_resample = resample_filter(dedup.hash_resample)

    def _analyze(self, record: MediaRecord) -> Tuple[VisualFeatures, imagehash.ImageHash, QualityScore]:
        """
        Decode once and compute everything visual about a record.

        Raises:
            DecodeError: if the record cannot be decoded
        """
        cached = self.cache.lookup(record.id)
        if cached is not None:
            return cached

        buffer = load_pixels(record, self.pixel_source, self.config.analysis.analysis_width)
        features = self.extractor.extract(buffer)
        phash = compute_dhash(buffer, self.hash_resample)
        del buffer

        quality = self.extractor.score(features)
        self.cache.store(record.id, features, phash, quality)
        return features, phash, quality

    def features(self, record: MediaRecord) -> VisualFeatures:
        """Visual features of an image record; raises DecodeError"""
        return self._analyze(record)[0]

    def perceptual_hash(self, record: MediaRecord) -> Optional[imagehash.ImageHash]:
        """64-bit dHash of an image record, or None for videos and undecodable images"""
        if record.is_video:
            return None
        try:
            return self._analyze(record)[1]
        except DecodeError as e:
            logger.warning("Cannot hash %s: %s", record.filename, e)
            return None

    def quality(self, record: MediaRecord) -> QualityScore:
        """Quality score of an image record; zero score if it cannot be decoded"""
        try:
            return self._analyze(record)[2]
        except DecodeError as e:
            logger.warning("Cannot score %s: %s", record.filename, e)
            return QualityScore.zero()

    def classify(self, record: MediaRecord) -> ClassificationResult:
        """
        Classify a record, decoding only when metadata alone is not enough.

        Never raises for undecodable images; they come back UNSURE.
        """
        classification = self.config.classification
        result = classify_metadata(record.filename, record.size_bytes, record.kind, classification)
        if result is not None:
            return result

        try:
            features = self.features(record)
        except DecodeError as e:
            logger.warning("Analysis failed for %s: %s", record.filename, e)
            return ClassificationResult.analysis_failed()

        return classify_visual(features, classification)

    def find_duplicates(self, records: Iterable[MediaRecord]) -> List[DuplicateGroup]:
        """
        Group near-duplicate images among `records`.

        Callers pass the records that were not discarded. Videos are
        skipped; hashes and qualities are computed and cached as needed.
        """
        candidates = []
        for record in records:
            if record.is_video:
                continue

            try:
                _, phash, quality = self._analyze(record)
            except DecodeError as e:
                logger.warning("Excluding %s from duplicate scan: %s", record.filename, e)
                phash, quality = None, None

            candidates.append(DuplicateCandidate(
                record_id=record.id,
                timestamp=record.timestamp,
                phash=phash,
                quality=quality,
            ))

        return self.detector.find_duplicates(candidates)
