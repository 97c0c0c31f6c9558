"""Tests for whitelist administration and player name resolution."""

import json

import pytest

from hytale_manager.exceptions import ManagerError, NotFoundError, ValidationError
from hytale_manager.whitelist import WhitelistManager
from hytale_manager.whitelist_helpers import (
    CachedName,
    PlayerNameCache,
    normalize_username,
    normalize_uuid,
    username_from_profile,
)
from tests.helpers.hytale_fakes import FakePlayerLookup

STEVE = "0f8fad5b-d9cb-469f-a165-70867728950e"
ALEX = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
NOTCH = "16fdc8d1-2f7a-4b5e-9c3d-0a1b2c3d4e5f"


@pytest.fixture
def lookup():
    return FakePlayerLookup({"Notch": (NOTCH, "Notch"), NOTCH: (NOTCH, "Notch")})


@pytest.fixture
def name_cache(tmp_path):
    return PlayerNameCache(tmp_path / "names.json")


@pytest.fixture
def whitelist(manager_config, name_cache, lookup, relay, terminal):
    return WhitelistManager(manager_config.server_dir, name_cache, lookup, relay, terminal.system)


def _profile(server_dir, uuid, payload):
    players = server_dir / "universe" / "players"
    players.mkdir(parents=True, exist_ok=True)
    (players / f"{uuid}.json").write_text(json.dumps(payload))


def _stored(whitelist):
    return json.loads(whitelist.path.read_text())


def test_normalize_uuid_and_username():
    assert normalize_uuid(STEVE.replace("-", "").upper()) == STEVE
    assert normalize_uuid(f"  {STEVE} ") == STEVE
    assert normalize_uuid("not-a-uuid") is None
    assert normalize_uuid(42) is None
    assert normalize_username("Steve_01") == "Steve_01"
    assert normalize_username("x") is None
    assert normalize_username(STEVE) is None


def test_username_from_profile_checks_nested_fields():
    assert username_from_profile({"Username": "Steve"}) == "Steve"
    assert username_from_profile({"Nameplate": {"Text": "Alex"}}) == "Alex"
    assert username_from_profile({"Components": {"PlayerName": ["  ", "Deep_1"]}}) is None
    assert username_from_profile({"Data": {"DisplayName": {"Value": "Deep_1"}}}) is None
    assert username_from_profile({"displayname": {"name": "Deep_1"}}) == "Deep_1"
    assert username_from_profile(["Steve"]) is None


@pytest.mark.asyncio
async def test_missing_file_is_initialised_disabled(whitelist):
    state = await whitelist.list_whitelist()

    assert state.enabled is False
    assert state.entries == []
    assert _stored(whitelist) == {"enabled": False, "list": []}


@pytest.mark.asyncio
async def test_add_by_compact_uuid_normalises_and_ignores_duplicates(whitelist, lookup):
    await whitelist.add_entry(STEVE.replace("-", "").upper())
    state = await whitelist.add_entry(STEVE)

    assert _stored(whitelist)["list"] == [STEVE]
    assert [entry.uuid for entry in state.entries] == [STEVE]
    assert state.entries[0].source == "unknown"
    assert lookup.queries == [STEVE, STEVE]


@pytest.mark.asyncio
async def test_add_by_username_uses_local_profiles(whitelist, manager_config, name_cache, lookup):
    _profile(manager_config.server_dir, STEVE, {"Username": "Steve"})

    state = await whitelist.add_entry("steve")

    assert _stored(whitelist)["list"] == [STEVE]
    assert state.entries[0].username == "Steve"
    assert state.entries[0].source == "local-player"
    assert state.entries[0].last_seen_at.endswith("Z")
    assert (await name_cache.load())[STEVE].username == "Steve"
    assert lookup.queries == []


@pytest.mark.asyncio
async def test_add_by_username_falls_back_to_cache_then_remote(whitelist, name_cache, lookup):
    await name_cache.save({ALEX: CachedName("Alex", "2024-01-01T00:00:00Z")})

    await whitelist.add_entry("ALEX")
    state = await whitelist.add_entry("Notch")

    assert _stored(whitelist)["list"] == [ALEX, NOTCH]
    by_uuid = {entry.uuid: entry for entry in state.entries}
    assert by_uuid[ALEX].source == "cache"
    assert by_uuid[ALEX].username == "Alex"
    assert by_uuid[NOTCH].source == "cache"
    assert lookup.queries == ["Notch"]
    assert (await name_cache.load())[NOTCH].username == "Notch"


@pytest.mark.asyncio
async def test_add_rejects_blank_invalid_and_unknown_names(whitelist):
    with pytest.raises(ValidationError, match="username or UUID is required"):
        await whitelist.add_entry("   ")
    with pytest.raises(ValidationError, match="valid username or UUID"):
        await whitelist.add_entry("no spaces allowed")
    with pytest.raises(NotFoundError, match="Could not resolve Hytale username 'Herobrine'") as unknown:
        await whitelist.add_entry("Herobrine")

    assert unknown.value.status == 404


@pytest.mark.asyncio
async def test_remove_entry(whitelist, sink):
    await whitelist.add_entry(STEVE)

    state = await whitelist.remove_entry(STEVE.upper())

    assert state.entries == []
    assert _stored(whitelist)["list"] == []
    with pytest.raises(NotFoundError, match="Whitelist entry not found"):
        await whitelist.remove_entry(STEVE)
    with pytest.raises(ValidationError, match="uuid must be a valid UUID"):
        await whitelist.remove_entry("steve")
    assert len(sink.payloads("whitelist.state")) == 2


@pytest.mark.asyncio
async def test_set_enabled_persists_and_broadcasts(whitelist, sink, terminal):
    await whitelist.add_entry(ALEX)

    state = await whitelist.set_enabled(True)

    assert state.enabled is True
    assert _stored(whitelist) == {"enabled": True, "list": [ALEX]}
    payload = sink.payloads("whitelist.state")[-1]["whitelist"]
    assert payload["enabled"] is True
    assert payload["entries"][0]["uuid"] == ALEX
    assert "Whitelist enabled." in [line.text for line in terminal.lines()]
    with pytest.raises(ValidationError, match="enabled must be a boolean"):
        await whitelist.set_enabled("yes")


@pytest.mark.asyncio
async def test_remote_lookups_per_listing_are_bounded(whitelist, lookup):
    uuids = [f"00000000-0000-4000-8000-00000000000{index}" for index in range(5)]
    whitelist.path.parent.mkdir(parents=True, exist_ok=True)
    whitelist.path.write_text(json.dumps({"enabled": True, "list": uuids + ["junk"]}))

    state = await whitelist.list_whitelist()

    assert [entry.uuid for entry in state.entries] == uuids
    assert len(lookup.queries) == 3


@pytest.mark.asyncio
async def test_invalid_json_is_a_server_error(whitelist):
    whitelist.path.parent.mkdir(parents=True, exist_ok=True)
    whitelist.path.write_text("{not json")

    with pytest.raises(ManagerError, match="not valid JSON") as failure:
        await whitelist.list_whitelist()

    assert failure.value.status == 500
