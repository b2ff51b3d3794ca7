# utils/report_generator.py

import html
import json
import logging
from dataclasses import asdict
from typing import Dict, List, Optional

from core.models import ClassificationResult, DuplicateGroup, MediaRecord, QualityScore
from components.triage_session import TriageStats
from utils.file_utils import format_file_size

logger = logging.getLogger(__name__)


class TriageReportGenerator:
    """
    Generate reports for triage results
    """

    def __init__(self, records: List[MediaRecord]):
        self.records = {r.id: r for r in records}

    def to_dict(self,
                classifications: Dict[str, ClassificationResult],
                groups: List[DuplicateGroup],
                stats: Optional[TriageStats] = None,
                qualities: Optional[Dict[str, QualityScore]] = None) -> dict:
        """Plain-data form of a triage run, suitable for JSON"""
        qualities = qualities or {}
        items = []
        for record_id, result in classifications.items():
            record = self.records.get(record_id)
            item = {
                'id': record_id,
                'filename': record.filename if record else None,
                'kind': record.kind.value if record else None,
                'size_bytes': record.size_bytes if record else None,
                'category': result.category.value,
                'confidence': result.confidence,
                'reason': result.reason,
                'tags': list(result.tags),
            }
            if record_id in qualities:
                item['quality'] = asdict(qualities[record_id])
            items.append(item)

        return {
            'stats': asdict(stats) if stats else None,
            'items': items,
            'duplicate_groups': [
                {
                    'id': group.group_id,
                    'best_id': group.best_id,
                    'score_gap': group.score_gap,
                    'members': list(group.member_ids),
                }
                for group in groups
            ],
        }

    def save_json(self, output_path: str, **kwargs):
        with open(output_path, 'w') as f:
            json.dump(self.to_dict(**kwargs), f, indent=2)
        logger.info("JSON report saved: %s", output_path)

    def generate_report(self,
                        groups: List[DuplicateGroup],
                        output_path: str = "triage_report.html",
                        stats: Optional[TriageStats] = None):
        """
        Generate HTML report with statistics and duplicate groups
        """
        html_content = self._create_html_template()

        stats_html = ""
        if stats is not None:
            stats_html = f"""
        <div class="statistics">
            <h2>Triage Summary</h2>
            <p><strong>Keep:</strong> {stats.count_keep} ({format_file_size(stats.keep_size)})</p>
            <p><strong>Discard:</strong> {stats.count_discard} ({format_file_size(stats.discard_size)})</p>
            <p><strong>Unsure:</strong> {stats.count_unsure}</p>
            <p><strong>Total size:</strong> {format_file_size(stats.total_size)}</p>
        </div>
        """

        savings = self._calculate_space_savings(groups)
        groups_html = f"""
        <div class="statistics">
            <h2>Duplicate Bursts</h2>
            <p><strong>Total duplicate groups:</strong> {len(groups)}</p>
            <p><strong>Potential space savings:</strong> {format_file_size(savings)}</p>
        </div>
        <div class='duplicate-groups'>"""

        for idx, group in enumerate(groups):
            groups_html += self._create_group_html(idx, group)

        groups_html += "</div>"

        final_html = html_content.replace("{{STATS}}", stats_html)
        final_html = final_html.replace("{{GROUPS}}", groups_html)

        with open(output_path, 'w') as f:
            f.write(final_html)

        logger.info("Report generated: %s", output_path)

    def _calculate_space_savings(self, groups: List[DuplicateGroup]) -> int:
        """Bytes freed by keeping only the best shot of each group"""
        return sum(
            self.records[record_id].size_bytes
            for group in groups
            for record_id in group.member_ids
            if record_id != group.best_id and record_id in self.records
        )

    def _create_group_html(self, idx: int, group: DuplicateGroup) -> str:
        group_html = f"""
        <div class="duplicate-group">
            <h3>Group {idx + 1} <span class="file-info">score gap {group.score_gap:.2f}</span></h3>
            <div class="members">
        """

        for record_id, total in zip(group.member_ids, group.totals):
            record = self.records.get(record_id)
            name = html.escape(record.filename if record else record_id)
            css = "member best" if record_id == group.best_id else "member"
            label = "Best shot" if record_id == group.best_id else "Duplicate"
            group_html += f"""
                <div class="{css}">
                    <h4>{label}</h4>
                    <p>{name}</p>
                    <p class="file-info">Quality: {total * 100:.0f}</p>
                </div>
            """

        group_html += """
            </div>
        </div>
        """
        return group_html

    def _create_html_template(self) -> str:
        """HTML template for report"""
        return """
        <!DOCTYPE html>
        <html>
        <head>
            <title>Media Triage Report</title>
            <style>
                body { font-family: Arial, sans-serif; margin: 20px; }
                .statistics { background: #f0f0f0; padding: 20px; border-radius: 5px; margin-bottom: 20px; }
                .duplicate-group { border: 1px solid #ccc; margin: 20px 0; padding: 15px; }
                .members { display: grid; grid-template-columns: repeat(auto-fill, minmax(200px, 1fr)); gap: 10px; }
                .member { border: 1px solid #ddd; padding: 10px; text-align: center; }
                .best { background: #e8f5e9; border-color: #4caf50; }
                .file-info { font-size: 0.9em; color: #666; }
            </style>
        </head>
        <body>
            <h1>Media Triage Report</h1>
            {{STATS}}
            {{GROUPS}}
        </body>
        </html>
        """
