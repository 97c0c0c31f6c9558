"""Tests for persisted runtime settings and launch argument composition."""

import pytest

from hytale_manager.exceptions import ValidationError
from hytale_manager.models import RuntimeSettingsUpdate
from hytale_manager.runtime_settings import (
    JAVA_MAX_HEAP_MB_KEY,
    JAVA_MIN_HEAP_MB_KEY,
    RuntimeSettingsService,
    default_heap_settings,
    describe_settings,
)
from hytale_manager.settings_store import InMemorySettingsStore, SqliteSettingsStore

START_ARGS = "-XX:AOTCache=HytaleServer.aot -jar HytaleServer.jar --assets Assets.zip"


def _service(initial=None, start_args=START_ARGS):
    return RuntimeSettingsService(InMemorySettingsStore(initial), start_args)


def test_defaults_without_stored_values():
    settings = _service().read()

    assert settings.bind_port == 25565
    assert settings.auto_backup_enabled is True
    assert settings.backup_frequency_minutes == 30
    assert settings.backup_max_count == 12
    assert (settings.java_min_heap_mb, settings.java_max_heap_mb) == (2048, 4096)
    assert settings.java_extra_args == ""


def test_heap_defaults_follow_start_args():
    assert default_heap_settings("-Xms1g -Xmx8g -jar HytaleServer.jar") == (1024, 8192)
    assert default_heap_settings("-Xmx 1024m -jar HytaleServer.jar") == (1024, 1024)


def test_read_falls_back_on_out_of_range_and_swaps_inverted_heap():
    service = _service(
        {
            "server.bind_port": "99999",
            JAVA_MIN_HEAP_MB_KEY: "8192",
            JAVA_MAX_HEAP_MB_KEY: "4096",
            "server.auto_backup_enabled": "0",
        }
    )

    settings = service.read()

    assert settings.bind_port == 25565
    assert settings.auto_backup_enabled is False
    assert (settings.java_min_heap_mb, settings.java_max_heap_mb) == (4096, 8192)


def test_inverted_heap_update_is_rejected():
    service = _service()

    with pytest.raises(ValidationError) as exc_info:
        service.update(RuntimeSettingsUpdate(java_min_heap_mb=8192, java_max_heap_mb=4096))

    assert exc_info.value.status == 400
    assert "javaMinHeapMb cannot be greater than javaMaxHeapMb" in exc_info.value.message


def test_valid_heap_update_is_reflected_in_launch_arguments():
    service = _service()

    service.update(RuntimeSettingsUpdate(java_min_heap_mb=2048, java_max_heap_mb=4096))
    args = service.launch_arguments("/backups")

    joined = " ".join(args)
    assert "-Xms2048m -Xmx4096m" in joined
    assert args.index("-Xmx4096m") < args.index("-jar")


def test_launch_arguments_layout():
    service = _service(start_args="-Xmx1g --bind 1.2.3.4:1 -XX:AOTCache=HytaleServer.aot -jar HytaleServer.jar --backup --assets Assets.zip")
    service.update(RuntimeSettingsUpdate(bind_port=5520, java_extra_args="-XX:+UseZGC '-Dname=with space'"))

    args = service.launch_arguments("/data/backups")

    assert args == [
        "-XX:AOTCache=HytaleServer.aot",
        "-Xms1024m",
        "-Xmx1024m",
        "-XX:+UseZGC",
        "-Dname=with space",
        "-jar",
        "HytaleServer.jar",
        "--assets",
        "Assets.zip",
        "--bind",
        "0.0.0.0:5520",
        "--backup",
        "--backup-dir",
        "/data/backups",
        "--backup-frequency",
        "30",
        "--backup-max-count",
        "12",
    ]


def test_disabling_backups_drops_backup_flags():
    service = _service()
    service.update(RuntimeSettingsUpdate(auto_backup_enabled=False))

    assert "--backup" not in service.launch_arguments("/backups")


@pytest.mark.parametrize(
    "update, message",
    [
        (RuntimeSettingsUpdate(bind_port=0), "bindPort must be an integer between 1 and 65535."),
        (RuntimeSettingsUpdate(backup_max_count=True), "backupMaxCount must be an integer between 1 and 500."),
        (RuntimeSettingsUpdate(java_extra_args="-jar other.jar"), "javaExtraArgs cannot include '-jar'."),
        (RuntimeSettingsUpdate(java_extra_args="-Xmx2g"), "javaExtraArgs cannot include -Xms/-Xmx."),
    ],
)
def test_invalid_updates_are_rejected(update, message):
    with pytest.raises(ValidationError) as exc_info:
        _service().update(update)

    assert exc_info.value.message.startswith(message)


def test_update_persists_every_field():
    store = InMemorySettingsStore()
    RuntimeSettingsService(store, START_ARGS).update(RuntimeSettingsUpdate(backup_max_count=3))

    assert store.get("server.backup_max_count") == "3"
    assert store.get("server.bind_port") == "25565"
    assert store.get("server.auto_backup_enabled") == "1"
    assert store.get(JAVA_MAX_HEAP_MB_KEY) == "4096"


def test_sqlite_store_round_trips_values(tmp_path):
    store = SqliteSettingsStore(tmp_path / "app.sqlite")
    try:
        store.set("server.bind_port", "5520")
        store.set("server.bind_port", "5521")
        assert store.get("server.bind_port") == "5521"
        assert store.get("missing") is None
    finally:
        store.close()

    reopened = SqliteSettingsStore(tmp_path / "app.sqlite")
    try:
        assert reopened.get("server.bind_port") == "5521"
    finally:
        reopened.close()


def test_describe_settings_summarises_values():
    line = describe_settings(_service().read())

    assert line == (
        "Runtime settings updated: bind=0.0.0.0:25565, autoBackup=on, backupFrequency=30m, "
        "backupMaxCount=12, javaHeap=2048m-4096m."
    )
