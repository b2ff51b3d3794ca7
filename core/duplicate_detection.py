# core/duplicate_detection.py

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

import imagehash

from core.models import DuplicateGroup, QualityScore
from core.perceptual_hash import hamming_distance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DuplicateCandidate:
    """A record prepared for duplicate scanning"""
    record_id: str
    timestamp: float
    phash: Optional[imagehash.ImageHash]
    quality: Optional[QualityScore]

    @property
    def total(self) -> float:
        return self.quality.total if self.quality is not None else 0.0


class BurstDuplicateDetector:
    """
    Groups near-duplicate shots taken close together in time.

    Candidates are ordered by timestamp and each unvisited candidate seeds a
    group, pulling in every unvisited candidate within the next
    `window_size` positions whose hash is within `hash_threshold` bits of
    the seed. Grouping is greedy: two shots that both match a seed but not
    each other still land in the same group, and a shot claimed by an
    earlier seed is never compared again.

    Time Complexity: O(n * window_size)
    """

    def __init__(self, hash_threshold: int = 5, window_size: int = 50):
        self.hash_threshold = hash_threshold
        self.window_size = window_size

    def find_duplicates(self, candidates: Sequence[DuplicateCandidate]) -> List[DuplicateGroup]:
        """
        Find burst groups, best-quality member first

        Returns:
            Groups in order of their earliest member; never contains a
            group with fewer than two members
        """
        # Stable: equal timestamps keep input order
        ordered = sorted(candidates, key=lambda c: c.timestamp)

        visited: Set[int] = set()
        groups = []

        for i, current in enumerate(ordered):
            if i in visited:
                continue

            group = [current]
            visited.add(i)

            if current.phash is not None:
                look_ahead = min(len(ordered), i + 1 + self.window_size)
                for j in range(i + 1, look_ahead):
                    if j in visited:
                        continue

                    candidate = ordered[j]
                    if candidate.phash is None:
                        continue

                    if hamming_distance(current.phash, candidate.phash) <= self.hash_threshold:
                        group.append(candidate)
                        visited.add(j)

            if len(group) > 1:
                groups.append(self._rank_group(current, group))

        logger.info("Found %d duplicate groups among %d candidates",
                    len(groups), len(ordered))
        return groups

    def _rank_group(self, seed: DuplicateCandidate,
                    members: List[DuplicateCandidate]) -> DuplicateGroup:
        """Sort by quality total descending, keeping time order on ties"""
        ranked = sorted(members, key=lambda c: c.total, reverse=True)

        best, runner_up = ranked[0], ranked[1]
        return DuplicateGroup(
            group_id=f"group-{seed.record_id}",
            member_ids=tuple(c.record_id for c in ranked),
            best_id=best.record_id,
            score_gap=max(0.0, best.total - runner_up.total),
            totals=tuple(c.total for c in ranked),
        )
