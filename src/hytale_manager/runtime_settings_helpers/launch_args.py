"""Launch argument composition for the game server JVM."""

from __future__ import annotations

from typing import List, Sequence

from ..models import RuntimeSettings
from .arg_parser import is_heap_argument, parse_args

_VALUED_FLAGS = {"--bind", "-b", "--backup-dir", "--backup-frequency", "--backup-max-count"}


def strip_managed_runtime_args(args: Sequence[str]) -> List[str]:
    """Drop heap, bind and backup flags (and their values) from the configured base args."""
    result: List[str] = []
    skip_next = False
    for current in args:
        if skip_next:
            skip_next = False
            continue
        if current == "--backup":
            continue
        if current in _VALUED_FLAGS or current.lower() in ("-xms", "-xmx"):
            skip_next = True
            continue
        if is_heap_argument(current):
            continue
        result.append(current)
    return result


def build_java_runtime_args(settings: RuntimeSettings) -> List[str]:
    args = [f"-Xms{settings.java_min_heap_mb}m", f"-Xmx{settings.java_max_heap_mb}m"]
    if not settings.java_extra_args:
        return args
    extra = [arg for arg in parse_args(settings.java_extra_args) if not is_heap_argument(arg) and arg.lower() != "-jar"]
    return args + extra


def build_start_arguments(start_args: str, settings: RuntimeSettings, backup_dir: str) -> List[str]:
    """Compose the full JVM argument list (without the java executable)."""
    args = strip_managed_runtime_args(parse_args(start_args))
    if "-jar" in args:
        jar_index = args.index("-jar")
        pre_jar, jar_and_server = args[:jar_index], args[jar_index:]
    else:
        pre_jar, jar_and_server = args, []

    composed = pre_jar + build_java_runtime_args(settings) + jar_and_server
    composed += ["--bind", f"0.0.0.0:{settings.bind_port}"]

    if settings.auto_backup_enabled:
        composed += [
            "--backup",
            "--backup-dir",
            backup_dir,
            "--backup-frequency",
            str(settings.backup_frequency_minutes),
            "--backup-max-count",
            str(settings.backup_max_count),
        ]
    return composed
