# core/batch_processor.py

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from tqdm import tqdm

from core.analyzer import MediaAnalyzer
from core.models import Category, ClassificationResult, DuplicateGroup, MediaRecord

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class TriageResult:
    """Outcome of a full triage run"""
    classifications: Dict[str, ClassificationResult] = field(default_factory=dict)
    duplicate_groups: List[DuplicateGroup] = field(default_factory=list)
    cancelled: bool = False

    def count(self, category: Category) -> int:
        return sum(1 for r in self.classifications.values() if r.category == category)


def non_discarded(records: Sequence[MediaRecord],
                  classifications: Dict[str, ClassificationResult]) -> List[MediaRecord]:
    """Records eligible for a duplicate scan"""
    return [
        record for record in records
        if record.id not in classifications
        or classifications[record.id].category != Category.DISCARD
    ]


class BatchProcessor:
    """
    Runs per-record analysis in bounded batches

    At most `batch_size` records are decoded at once, which caps the number
    of pixel buffers in memory. Cancellation is checked between batches.
    """

    def __init__(self,
                 analyzer: MediaAnalyzer,
                 batch_size: Optional[int] = None,
                 n_workers: Optional[int] = None,
                 show_progress: bool = True):
        analysis = analyzer.config.analysis
        self.analyzer = analyzer
        self.batch_size = batch_size or analysis.batch_size
        self.n_workers = min(n_workers or analysis.n_workers, self.batch_size)
        self.show_progress = show_progress

    def classify_all(self,
                     records: Sequence[MediaRecord],
                     progress_callback: Optional[ProgressCallback] = None,
                     cancel_event: Optional[threading.Event] = None) -> Dict[str, ClassificationResult]:
        """
        Classify records batch by batch

        Args:
            records: Records to classify
            progress_callback: Called with (processed, total) after each batch
            cancel_event: Stops processing before the next batch when set

        Returns:
            Results keyed by record id; records not reached before a
            cancellation are absent
        """
        total = len(records)
        results: Dict[str, ClassificationResult] = {}

        with ThreadPoolExecutor(max_workers=self.n_workers) as executor, \
                tqdm(total=total, desc="Analyzing media", disable=not self.show_progress) as bar:
            for i in range(0, total, self.batch_size):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Analysis cancelled after %d of %d records", len(results), total)
                    break

                batch = records[i:i + self.batch_size]
                for record, result in zip(batch, executor.map(self._classify_one, batch)):
                    results[record.id] = result

                bar.update(len(batch))
                if progress_callback:
                    progress_callback(len(results), total)

        return results

    def run(self,
            records: Sequence[MediaRecord],
            progress_callback: Optional[ProgressCallback] = None,
            cancel_event: Optional[threading.Event] = None) -> TriageResult:
        """
        Classify every record, then scan the non-discarded ones for
        duplicates in a single pass
        """
        classifications = self.classify_all(records, progress_callback, cancel_event)
        if len(classifications) < len(records):
            return TriageResult(classifications, [], cancelled=True)

        candidates = non_discarded(records, classifications)
        logger.info("Scanning %d records for duplicates", len(candidates))
        groups = self.analyzer.find_duplicates(candidates)
        return TriageResult(classifications, groups)

    def _classify_one(self, record: MediaRecord) -> ClassificationResult:
        # One bad file must not halt the rest of the batch
        try:
            return self.analyzer.classify(record)
        except Exception:
            logger.exception("Unexpected error analyzing %s", record.filename)
            return ClassificationResult.analysis_failed()
