"""Helper modules for runtime settings and launch argument composition."""

from .arg_parser import extract_heap_option_mb, is_heap_argument, parse_args, parse_heap_size_mb
from .launch_args import build_java_runtime_args, build_start_arguments, strip_managed_runtime_args
from .validation import apply_settings_update

__all__ = [
    "apply_settings_update",
    "build_java_runtime_args",
    "build_start_arguments",
    "extract_heap_option_mb",
    "is_heap_argument",
    "parse_args",
    "parse_heap_size_mb",
    "strip_managed_runtime_args",
]
