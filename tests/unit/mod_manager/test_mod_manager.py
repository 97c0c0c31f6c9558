"""Tests for mod listing, toggling and chunked uploads."""

import base64
import os

import pytest

from hytale_manager.exceptions import ConflictError, NotFoundError, ValidationError
from hytale_manager.mod_manager import ModManager


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def mods(manager_config, terminal):
    return ModManager(manager_config.server_dir, manager_config.uploads_dir, terminal.system)


@pytest.mark.asyncio
async def test_list_mods_creates_directory_and_sorts_newest_first(mods):
    assert await mods.list_mods() == []
    assert mods.mods_dir.is_dir()

    older = mods.mods_dir / "older.jar"
    newer = mods.mods_dir / "newer.zip.disabled"
    older.write_bytes(b"a")
    newer.write_bytes(b"bb")
    os.utime(older, (1_700_000_000, 1_700_000_000))
    os.utime(newer, (1_800_000_000, 1_800_000_000))
    (mods.mods_dir / "nested").mkdir()

    listed = await mods.list_mods()

    assert [mod.name for mod in listed] == ["newer.zip.disabled", "older.jar"]
    assert listed[0].disabled is True
    assert listed[0].size == 2
    assert listed[1].to_dict()["modifiedAt"].endswith("Z")


@pytest.mark.asyncio
async def test_disable_and_enable_round_trip(mods):
    await mods.list_mods()
    (mods.mods_dir / "cool.jar").write_bytes(b"jar")

    await mods.disable_mod("cool.jar")
    assert (mods.mods_dir / "cool.jar.disabled").is_file()

    await mods.disable_mod("cool.jar.disabled")
    await mods.enable_mod("cool.jar.disabled")
    assert (mods.mods_dir / "cool.jar").is_file()

    await mods.enable_mod("cool.jar")
    assert [mod.name for mod in await mods.list_mods()] == ["cool.jar"]


@pytest.mark.asyncio
async def test_toggle_conflicts_and_missing_files(mods):
    await mods.list_mods()
    (mods.mods_dir / "a.jar").write_bytes(b"1")
    (mods.mods_dir / "a.jar.disabled").write_bytes(b"2")

    with pytest.raises(ConflictError, match="already exists"):
        await mods.disable_mod("a.jar")
    with pytest.raises(NotFoundError):
        await mods.disable_mod("missing.jar")
    with pytest.raises(NotFoundError, match="Mod file not found."):
        await mods.delete_mod("missing.jar")


@pytest.mark.asyncio
async def test_filenames_cannot_escape_mods_directory(mods, manager_config):
    await mods.list_mods()
    outside = manager_config.server_dir / "HytaleServer.jar"
    outside.write_bytes(b"jar")

    with pytest.raises(NotFoundError):
        await mods.delete_mod("../HytaleServer.jar")

    assert outside.is_file()


@pytest.mark.asyncio
async def test_chunked_upload_lands_in_mods(mods, terminal):
    upload_id = await mods.start_upload("My Mod.jar", 6)

    session = await mods.append_upload(upload_id, _b64(b"abc"))
    assert session.received == 3
    await mods.append_upload(upload_id, _b64(b"def"))
    mod = await mods.finish_upload(upload_id)

    assert mod.name == "My_Mod.jar"
    assert (mods.mods_dir / "My_Mod.jar").read_bytes() == b"abcdef"
    assert list(mods.uploads_dir.iterdir()) == []
    assert "Uploaded mod My_Mod.jar." in terminal.texts()

    with pytest.raises(NotFoundError, match="Upload session not found."):
        await mods.finish_upload(upload_id)


@pytest.mark.asyncio
async def test_upload_validation(mods):
    with pytest.raises(ValidationError, match=".jar and .zip"):
        await mods.start_upload("script.sh", 10)
    with pytest.raises(ValidationError, match="greater than zero"):
        await mods.start_upload("mod.jar", 0)

    upload_id = await mods.start_upload("mod.zip", 4)
    with pytest.raises(ValidationError, match="not valid base64"):
        await mods.append_upload(upload_id, "abc")
    with pytest.raises(NotFoundError):
        await mods.append_upload("unknown", _b64(b"x"))


@pytest.mark.asyncio
async def test_cancel_upload_removes_partial_file(mods):
    upload_id = await mods.start_upload("mod.jar", 4)
    await mods.append_upload(upload_id, _b64(b"ab"))

    await mods.cancel_upload(upload_id)
    await mods.cancel_upload(upload_id)

    assert list(mods.uploads_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_rejects_bytes_beyond_declared_size(mods):
    upload_id = await mods.start_upload("mod.jar", 4)
    await mods.append_upload(upload_id, _b64(b"abc"))

    with pytest.raises(ValidationError, match="exceeds declared size: 5 of 4"):
        await mods.append_upload(upload_id, _b64(b"de"))

    session = await mods.append_upload(upload_id, _b64(b"d"))
    assert session.received == 4


@pytest.mark.asyncio
async def test_incomplete_upload_cannot_finish(mods):
    upload_id = await mods.start_upload("mod.jar", 4)
    await mods.append_upload(upload_id, _b64(b"ab"))

    with pytest.raises(ValidationError, match="received 2 of 4 bytes"):
        await mods.finish_upload(upload_id)

    assert not (mods.mods_dir / "mod.jar").exists()
    await mods.append_upload(upload_id, _b64(b"cd"))
    mod = await mods.finish_upload(upload_id)
    assert mod.size == 4
