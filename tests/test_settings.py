import asyncio

import pytest

from doubles import FakeBrowser, FakePlatform, MemoryStore, library, make_zone
from random_radio.core.selector import Engine
from random_radio.core.service import NOT_VALID, SUCCESS, RadioService, make_layout
from random_radio.models.settings import RadioMode, RadioSettings
from random_radio.services.status import StatusBoard
from random_radio.services.store import SettingsStore


def settings_for(layout):
    return {item.setting: item for item in layout.layout}


class TestRadioSettings:
    def test_modes_are_flattened_next_to_reserved_keys(self):
        settings = RadioSettings(
            profile="Alice",
            engine=Engine.CRYPTO,
            zone={"output_id": "o1", "name": "Kitchen"},
            modes={"o1": RadioMode.ALBUM, "o2": RadioMode.OFF},
        )

        assert settings.to_values() == {
            "profile": "Alice",
            "engine": 1,
            "zone": {"output_id": "o1", "name": "Kitchen"},
            "o1": "Albums",
            "o2": "",
        }
        assert settings.active_modes() == {"o1": RadioMode.ALBUM}

    def test_from_values_reads_modes(self):
        settings = RadioSettings.from_values({"engine": 0, "zone": None, "o1": "Tracks"})

        assert settings.engine is Engine.NATIVE
        assert settings.modes == {"o1": RadioMode.TRACK}


class TestLayout:
    def test_layout_without_zone(self):
        layout = make_layout({"engine": 2}, ["Alice", "Bob"])

        items = settings_for(layout)
        assert list(items) == ["profile", "engine", "zone"]
        assert [v.value for v in items["profile"].values] == ["Alice", "Bob"]
        assert [v.value for v in items["engine"].values] == [0, 1, 2]
        assert not layout.has_error

    def test_zone_adds_mode_dropdown(self):
        layout = make_layout({"engine": 2, "zone": {"output_id": "o1"}, "o1": "Albums"}, [])

        items = settings_for(layout)
        assert "profile" not in items
        assert [v.value for v in items["o1"].values] == ["", "Tracks", "Albums"]
        assert not layout.has_error

    @pytest.mark.parametrize(
        "values",
        [
            {"engine": 7},
            {"engine": 2, "profile": "Mallory"},
            {"engine": 2, "zone": {"output_id": "o1"}, "o1": "Genres"},
        ],
    )
    def test_invalid_values_flag_an_error(self, values):
        assert make_layout(values, ["Alice"]).has_error


def make_service(store=None):
    platform = FakePlatform(zones=[make_zone()])
    service = RadioService(platform, store or MemoryStore(), StatusBoard(), settle_delay=0)
    service.start()
    platform.subscribe()
    return service


def test_settings_layout_lists_profiles():
    service = make_service()

    layout = asyncio.run(service.settings_layout())

    assert [v.title for v in settings_for(layout)["profile"].values] == ["Alice", "Bob"]


def test_save_persists_and_supervises():
    store = MemoryStore()
    service = make_service(store)
    values = {"profile": "Bob", "engine": 1, "zone": {"output_id": "o1", "name": "Kitchen"}, "o1": "Tracks"}

    status, layout = asyncio.run(service.save_settings(values))

    assert status == SUCCESS
    assert store.data["settings"]["o1"] == "Tracks"
    assert store.data["settings"]["profile"] == "Bob"
    assert service.traversal.selector.engine is Engine.CRYPTO
    assert service.matcher.pending("z1") is not None


def test_dry_run_commits_nothing():
    store = MemoryStore()
    service = make_service(store)

    status, _ = asyncio.run(service.save_settings({"engine": 0, "o1": "Tracks"}, dryrun=True))

    assert status == SUCCESS
    assert store.saves == 0
    assert service.settings.modes == {}
    assert service.matcher.pending("z1") is None


def test_invalid_submission_commits_nothing():
    store = MemoryStore()
    service = make_service(store)

    status, layout = asyncio.run(service.save_settings({"engine": 2, "o1": "Genres"}))

    assert status == NOT_VALID
    assert layout.has_error
    assert store.saves == 0
    assert service.settings.modes == {}


def test_stored_settings_are_loaded():
    store = MemoryStore({"settings": {"engine": 1, "o1": "Albums"}})

    service = make_service(store)

    assert service.settings.modes == {"o1": RadioMode.ALBUM}
    assert service.traversal.selector.engine is Engine.CRYPTO


def test_corrupt_stored_settings_fall_back_to_defaults():
    service = make_service(MemoryStore({"settings": {"engine": "warp"}}))

    assert service.settings == RadioSettings()


def test_settings_store_round_trips_keys(tmp_path):
    store = SettingsStore(tmp_path / "nested" / "settings.json")
    assert store.load("settings") is None

    store.save("settings", {"engine": 2})
    store.save("other", [1, 2])

    reopened = SettingsStore(tmp_path / "nested" / "settings.json")
    assert reopened.load("settings") == {"engine": 2}
    assert reopened.load("other") == [1, 2]


def test_settings_store_ignores_unreadable_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")

    assert SettingsStore(path).load("settings") is None


def test_profiles_stay_valid_after_opening_settings():
    profiles = [f"Profile {i}" for i in range(5)]
    platform = FakePlatform(browser=FakeBrowser(library(profiles=profiles), page_size=2), zones=[make_zone()])
    service = RadioService(platform, MemoryStore(), StatusBoard(), settle_delay=0)
    service.start()
    platform.subscribe()

    async def scenario():
        await service.settings_layout()
        return await service.save_settings({"engine": 2, "profile": "Profile 0"})

    status, layout = asyncio.run(scenario())

    assert status == SUCCESS
    assert [v.value for v in settings_for(layout)["profile"].values] == profiles
    assert service.settings.profile == "Profile 0"
