"""Helper modules for the download engine."""

from .checksum import compute_sha256, normalize_expected_sha256, validate_sha256
from .download_cache import DownloadCache
from .parallel_ranges import RangePart, download_parallel_ranges, merge_part_files, plan_range_parts
from .progress import ProgressReporter, format_bytes
from .range_support import parse_content_range_total, check_range_support
from .single_stream import download_single_stream

__all__ = [
    "DownloadCache",
    "ProgressReporter",
    "RangePart",
    "check_range_support",
    "compute_sha256",
    "download_parallel_ranges",
    "download_single_stream",
    "format_bytes",
    "merge_part_files",
    "normalize_expected_sha256",
    "parse_content_range_total",
    "plan_range_parts",
    "validate_sha256",
]
