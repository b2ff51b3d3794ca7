"""
File operation utilities
"""

import logging
from pathlib import Path
from typing import List, Optional

from core.models import MediaKind, MediaRecord

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.gif', '.tiff', '.tif', '.webp', '.heic'}
VIDEO_EXTENSIONS = {'.mp4', '.mov', '.m4v', '.avi', '.mkv', '.3gp', '.webm'}


def media_kind_for(path: Path) -> Optional[MediaKind]:
    """Media kind from the file extension, None for other files"""
    suffix = path.suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    if suffix in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    return None


def get_media_files(directory: str, recursive: bool = True) -> List[Path]:
    """Get all image and video files in directory, sorted by path"""
    path = Path(directory)
    candidates = path.rglob('*') if recursive else path.glob('*')
    return sorted(p for p in candidates if p.is_file() and media_kind_for(p) is not None)


def build_media_records(paths: List[Path]) -> List[MediaRecord]:
    """
    Create records for files on disk

    The path doubles as the record id; the timestamp is the last
    modification time. Content is read lazily when a record is decoded.
    """
    records = []
    for path in paths:
        kind = media_kind_for(path)
        if kind is None:
            continue
        try:
            stat = path.stat()
        except OSError as e:
            logger.warning("Skipping %s: %s", path, e)
            continue

        records.append(MediaRecord(
            id=str(path),
            kind=kind,
            size_bytes=stat.st_size,
            filename=path.name,
            timestamp=stat.st_mtime,
            content=path,
        ))
    return records


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"
