# cli.py

import argparse
import logging
import sys
from pathlib import Path

from config import SystemConfig
from core.analyzer import MediaAnalyzer
from core.batch_processor import BatchProcessor
from core.exceptions import ConfigurationError, DecodeError
from core.models import Category
from core.perceptual_hash import hash_to_int
from components.triage_session import TriageSession
from utils.file_utils import build_media_records, format_file_size, get_media_files
from utils.logging_config import setup_logging
from utils.report_generator import TriageReportGenerator

logger = logging.getLogger(__name__)


def _load_records(directory: str, recursive: bool):
    paths = get_media_files(directory, recursive=recursive)
    records = build_media_records(paths)
    print(f"Found {len(records)} media files")
    return records


def analyze_command(args, config: SystemConfig):
    """Classify every media file in a directory"""
    records = _load_records(args.directory, args.recursive)
    analyzer = MediaAnalyzer(config)
    processor = BatchProcessor(analyzer, show_progress=not args.quiet)

    session = TriageSession(records)
    session.record_results(processor.classify_all(records))
    stats = session.stats()

    print(f"\nKeep:    {stats.count_keep} ({format_file_size(stats.keep_size)})")
    print(f"Discard: {stats.count_discard} ({format_file_size(stats.discard_size)})")
    print(f"Unsure:  {stats.count_unsure}")

    if args.verbose:
        for record in session.items_in(Category.DISCARD):
            result = session.results[record.id]
            print(f"  {record.filename}: {result.reason} ({result.confidence}%)")

    if args.output:
        report = TriageReportGenerator(records)
        report.save_json(args.output, classifications=session.results,
                         groups=[], stats=stats)
        print(f"\nResults saved to: {args.output}")


def duplicate_command(args, config: SystemConfig):
    """Classify a directory and find duplicate bursts among the keepers"""
    if args.hash_threshold is not None:
        config.duplicate_detection.hash_threshold = args.hash_threshold
    if args.window is not None:
        config.duplicate_detection.window_size = args.window
    config.validate()

    records = _load_records(args.directory, args.recursive)
    analyzer = MediaAnalyzer(config)
    processor = BatchProcessor(analyzer, show_progress=not args.quiet)

    result = processor.run(records)
    session = TriageSession(records)
    session.record_results(result.classifications)
    session.set_duplicate_groups(result.duplicate_groups)

    groups = session.duplicate_groups
    total_dups = sum(len(g) - 1 for g in groups)
    print(f"\nFound {len(groups)} duplicate groups with {total_dups} redundant shots")

    if args.report:
        report = TriageReportGenerator(records)
        report.generate_report(groups, args.report, stats=session.stats())
        print(f"Report saved to: {args.report}")
    else:
        for i, group in enumerate(groups, 1):
            print(f"\nGroup {i} (score gap {group.score_gap:.2f}):")
            for record_id, total in zip(group.member_ids, group.totals):
                marker = "*" if record_id == group.best_id else " "
                print(f"  {marker} {session.records[record_id].filename} (quality {total:.2f})")


def inspect_command(args, config: SystemConfig):
    """Print quality, hash and classification for a single file"""
    path = Path(args.file)
    records = build_media_records([path])
    if not records:
        print(f"Not a supported media file: {path}")
        return 1

    record = records[0]
    analyzer = MediaAnalyzer(config)
    result = analyzer.classify(record)
    print(f"{record.filename}: {result.category.value} ({result.confidence}%) - {result.reason}")

    if record.is_video:
        return 0

    try:
        features = analyzer.features(record)
        print(f"  Dimensions: {features.source_width}x{features.source_height}")
    except DecodeError as e:
        print(f"  Cannot decode: {e}")
        return 1

    quality = analyzer.quality(record)
    phash = analyzer.perceptual_hash(record)
    print(f"  Sharpness:  {quality.sharpness:.2f}")
    print(f"  Exposure:   {quality.exposure:.2f}")
    print(f"  Resolution: {quality.resolution:.2f}")
    print(f"  Total:      {quality.total:.2f}  [{', '.join(quality.tags)}]")
    if phash is not None:
        print(f"  dHash:      {phash} ({hash_to_int(phash)})")
    return 0


def main_cli(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Media Triage - classify photos and find duplicate bursts"
    )
    parser.add_argument('-c', '--config', default="config.yaml",
                        help='YAML configuration file')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Hide progress bars')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Analyze command
    analyze_parser = subparsers.add_parser('analyze', help='Classify media in a directory')
    analyze_parser.add_argument('directory', help='Directory to scan')
    analyze_parser.add_argument('--no-recursive', dest='recursive', action='store_false',
                                help='Do not descend into subdirectories')
    analyze_parser.add_argument('-o', '--output', help='Output JSON file for results')
    analyze_parser.add_argument('-v', '--verbose', action='store_true',
                                help='List discarded files with reasons')
    analyze_parser.set_defaults(func=analyze_command)

    # Duplicate detection command
    duplicate_parser = subparsers.add_parser('duplicates',
                                             help='Detect duplicate bursts')
    duplicate_parser.add_argument('directory', help='Directory to scan')
    duplicate_parser.add_argument('--no-recursive', dest='recursive', action='store_false',
                                  help='Do not descend into subdirectories')
    duplicate_parser.add_argument('-t', '--hash-threshold', type=int,
                                  help='Max differing hash bits')
    duplicate_parser.add_argument('-w', '--window', type=int,
                                  help='Look-ahead window in timestamp order')
    duplicate_parser.add_argument('-r', '--report', help='Output HTML report path')
    duplicate_parser.set_defaults(func=duplicate_command)

    # Inspect command
    inspect_parser = subparsers.add_parser('inspect', help='Analyze a single file')
    inspect_parser.add_argument('file', help='Path to an image or video')
    inspect_parser.set_defaults(func=inspect_command)

    # Parse arguments
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = SystemConfig.load(args.config)
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(config)
    logger.info("Running %s", args.command)

    # Execute command
    try:
        return args.func(args, config) or 0
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main_cli())
