# components/triage_session.py

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from core.exceptions import UnknownRecordError
from core.models import Category, ClassificationResult, DuplicateGroup, MediaRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriageStats:
    total_size: int
    keep_size: int
    discard_size: int
    count_keep: int
    count_discard: int
    count_unsure: int


class TriageSession:
    """
    In-memory review state for one batch of media

    Tracks classification results, user overrides, the trash bin and the
    current duplicate groups. Nothing is deleted from disk: trashing only
    hides a record from the session until it is restored.
    """

    def __init__(self, records: Sequence[MediaRecord]):
        self.records: Dict[str, MediaRecord] = {r.id: r for r in records}
        self.results: Dict[str, ClassificationResult] = {
            r.id: ClassificationResult.pending() for r in records
        }
        self.trash: List[str] = []
        self.duplicate_groups: List[DuplicateGroup] = []
        self.operation_log: List[dict] = []

    def _require(self, record_id: str) -> MediaRecord:
        try:
            return self.records[record_id]
        except KeyError:
            raise UnknownRecordError(record_id) from None

    def _log(self, operation: str, **details):
        self.operation_log.append({
            'operation': operation,
            'timestamp': datetime.now().strftime("%Y%m%d_%H%M%S"),
            **details
        })

    @property
    def active_ids(self) -> List[str]:
        trashed = set(self.trash)
        return [record_id for record_id in self.records if record_id not in trashed]

    def record_results(self, results: Dict[str, ClassificationResult]):
        """Attach analysis results, ignoring ids the session does not know"""
        for record_id, result in results.items():
            if record_id in self.records:
                self.results[record_id] = result

    def change_category(self, record_id: str, category: Category):
        """Override the category of a record, keeping its reason and tags"""
        self._require(record_id)
        previous = self.results[record_id].category
        self.results[record_id] = self.results[record_id].with_category(category)
        self._log('change_category', record_id=record_id,
                  previous=previous.value, category=category.value)

    def items_in(self, category: Category) -> List[MediaRecord]:
        return [self.records[record_id] for record_id in self.active_ids
                if self.results[record_id].category == category]

    def duplicate_candidates(self) -> List[MediaRecord]:
        """Records not trashed and not classified DISCARD"""
        return [self.records[record_id] for record_id in self.active_ids
                if self.results[record_id].category != Category.DISCARD]

    def set_duplicate_groups(self, groups: Iterable[DuplicateGroup]):
        self.duplicate_groups = list(groups)

    def move_to_trash(self, record_ids: Iterable[str]) -> List[str]:
        """
        Trash records and prune them from the duplicate groups

        Returns:
            Ids actually moved (already trashed ids are skipped)
        """
        moved = []
        for record_id in record_ids:
            self._require(record_id)
            if record_id not in self.trash:
                self.trash.append(record_id)
                moved.append(record_id)

        if moved:
            self._prune_groups(set(moved))
            self._log('move_to_trash', record_ids=moved)
        return moved

    def restore_from_trash(self, record_ids: Iterable[str]) -> List[str]:
        restored = []
        for record_id in record_ids:
            self._require(record_id)
            if record_id in self.trash:
                self.trash.remove(record_id)
                restored.append(record_id)

        if restored:
            self._log('restore', record_ids=restored)
        return restored

    def undo_last(self) -> Optional[dict]:
        """
        Revert the most recent operation.

        Duplicate groups pruned by a trash operation are not rebuilt; run
        the duplicate scan again for that.
        """
        if not self.operation_log:
            return None

        entry = self.operation_log.pop()
        operation = entry['operation']
        if operation in ('move_to_trash', 'resolve_group'):
            for record_id in entry['record_ids']:
                if record_id in self.trash:
                    self.trash.remove(record_id)
        elif operation == 'restore':
            self.trash.extend(r for r in entry['record_ids'] if r not in self.trash)
        elif operation == 'change_category':
            record_id = entry['record_id']
            self.results[record_id] = self.results[record_id].with_category(
                Category(entry['previous'])
            )
        return entry

    def resolve_duplicate_group(self, group_id: str) -> List[str]:
        """Keep the best shot of a group and trash the rest"""
        group = next((g for g in self.duplicate_groups if g.group_id == group_id), None)
        if group is None:
            raise UnknownRecordError(group_id)

        to_trash = [record_id for record_id in group.member_ids
                    if record_id != group.best_id and record_id not in self.trash]
        self.trash.extend(to_trash)
        self.duplicate_groups = [g for g in self.duplicate_groups if g.group_id != group_id]
        self._prune_groups(set(to_trash))
        self._log('resolve_group', group_id=group_id, record_ids=to_trash)
        logger.info("Resolved %s: kept %s, trashed %d", group_id, group.best_id, len(to_trash))
        return to_trash

    def _prune_groups(self, removed_ids):
        pruned = []
        for group in self.duplicate_groups:
            remaining = group.without(removed_ids)
            if remaining is not None:
                pruned.append(remaining)
        self.duplicate_groups = pruned

    def stats(self) -> TriageStats:
        """Size and count summary over records not in the trash"""
        total_size = keep_size = discard_size = 0
        count_keep = count_discard = count_unsure = 0

        for record_id in self.active_ids:
            size = self.records[record_id].size_bytes
            category = self.results[record_id].category
            total_size += size
            if category == Category.KEEP:
                keep_size += size
                count_keep += 1
            elif category == Category.DISCARD:
                discard_size += size
                count_discard += 1
            elif category == Category.UNSURE:
                count_unsure += 1

        return TriageStats(total_size, keep_size, discard_size,
                           count_keep, count_discard, count_unsure)
