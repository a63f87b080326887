import asyncio

import pytest

from doubles import make_zone
from random_radio.core.matcher import PredicateMatcher, matches
from random_radio.models.state import NowPlayingPredicate, PlayState, Predicate, SettingsPredicate


@pytest.fixture
def matcher():
    return PredicateMatcher()


def seek(n):
    return Predicate(now_playing=NowPlayingPredicate(seek_position=n))


class TestMatches:
    @pytest.mark.parametrize("position,expected", [(9, False), (10, True), (11, True), (12, False)])
    def test_seek_position_allows_one_off(self, position, expected):
        assert matches(seek(10), make_zone(seek=position)) is expected

    def test_seek_position_needs_now_playing(self):
        assert not matches(seek(0), make_zone())

    def test_length_matches_any_reported_length(self):
        predicate = Predicate(now_playing=NowPlayingPredicate(length=True))
        assert matches(predicate, make_zone(length=187))
        assert not matches(predicate, make_zone(seek=3))

    def test_capability_and_state_are_alternatives(self):
        predicate = Predicate(is_play_allowed=True, state=PlayState.PLAYING)
        assert matches(predicate, make_zone(play_allowed=True))
        assert matches(predicate, make_zone(state=PlayState.PLAYING))
        assert not matches(predicate, make_zone(state=PlayState.PAUSED))

    def test_pause_allowed(self):
        predicate = Predicate(is_pause_allowed=True)
        assert matches(predicate, make_zone(state=PlayState.PLAYING))
        assert not matches(predicate, make_zone(state=PlayState.STOPPED))

    def test_settings_auto_radio(self):
        predicate = Predicate(settings=SettingsPredicate(auto_radio=False))
        assert matches(predicate, make_zone(auto_radio=False))
        assert not matches(predicate, make_zone(auto_radio=True))

    def test_empty_predicate_is_empty(self):
        assert Predicate().is_empty()
        assert Predicate(now_playing=NowPlayingPredicate(), settings=SettingsPredicate()).is_empty()
        assert not seek(0).is_empty()


class TestPredicateMatcher:
    def test_fires_once_and_clears(self, matcher):
        fired = []
        matcher.register("z1", Predicate(state=PlayState.STOPPED), fired.append)

        assert matcher.feed(make_zone())
        assert not matcher.feed(make_zone())
        assert len(fired) == 1
        assert matcher.pending("z1") is None

    def test_other_zone_does_not_fire(self, matcher):
        fired = []
        matcher.register("z1", Predicate(state=PlayState.STOPPED), fired.append)

        matcher.feed(make_zone(zone_id="z2"))

        assert fired == []
        assert matcher.pending("z1") is not None

    def test_register_replaces_without_invoking(self, matcher):
        first, second = [], []
        matcher.register("z1", Predicate(state=PlayState.STOPPED), first.append)
        matcher.register("z1", Predicate(state=PlayState.STOPPED), second.append)

        matcher.feed(make_zone())

        assert first == []
        assert len(second) == 1
        assert len(matcher) == 0

    def test_one_wait_per_zone(self, matcher):
        for _ in range(3):
            matcher.register("z1", Predicate(state=PlayState.PLAYING), lambda zone: None)
        matcher.register("z2", Predicate(state=PlayState.PLAYING), lambda zone: None)

        assert len(matcher) == 2

    def test_empty_predicate_never_matches(self, matcher):
        fired = []
        matcher.register("z1", Predicate(), fired.append)

        matcher.feed(make_zone())

        assert fired == []

    def test_continuation_can_register_successor(self, matcher):
        successor = Predicate(state=PlayState.PLAYING)

        def rearm(zone):
            matcher.register(zone.zone_id, successor, lambda zone: None)

        matcher.register("z1", Predicate(state=PlayState.STOPPED), rearm)
        matcher.feed(make_zone())

        assert matcher.pending("z1").predicate == successor

    def test_continuation_receives_full_snapshot(self, matcher):
        fired = []
        matcher.register("z1", Predicate(settings=SettingsPredicate(auto_radio=True)), fired.append)

        zone = make_zone(auto_radio=True, length=200, seek=5)
        matcher.feed(zone)

        assert fired == [zone]

    def test_async_continuation_is_scheduled(self, matcher):
        done = []

        async def continuation(zone):
            done.append(zone.zone_id)

        async def scenario():
            matcher.register("z1", Predicate(state=PlayState.STOPPED), continuation)
            matcher.feed(make_zone())
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert done == ["z1"]

    def test_discard(self, matcher):
        fired = []
        matcher.register("z1", Predicate(state=PlayState.STOPPED), fired.append)

        matcher.discard("z1")
        matcher.discard("unknown")
        matcher.feed(make_zone())

        assert fired == []


def test_waits_never_expire_by_default(monkeypatch):
    clock = [100.0]
    monkeypatch.setattr("random_radio.core.matcher.time.monotonic", lambda: clock[0])
    matcher = PredicateMatcher()
    matcher.register("z1", Predicate(state=PlayState.PLAYING), lambda zone: None)

    clock[0] += 10_000
    matcher.feed(make_zone(zone_id="z2"))

    assert matcher.pending("z1") is not None


def test_abandoned_waits_are_dropped_after_timeout(monkeypatch):
    clock = [100.0]
    monkeypatch.setattr("random_radio.core.matcher.time.monotonic", lambda: clock[0])
    fired = []
    matcher = PredicateMatcher(wait_timeout=60)
    matcher.register("z1", Predicate(state=PlayState.STOPPED), fired.append)

    clock[0] += 61
    matcher.feed(make_zone())

    assert fired == []
    assert matcher.pending("z1") is None


def test_failing_continuation_does_not_break_the_feed(matcher):
    fired = []

    def broken(zone):
        raise RuntimeError("boom")

    matcher.register("z1", Predicate(state=PlayState.STOPPED), broken)
    matcher.register("z2", Predicate(state=PlayState.STOPPED), fired.append)

    assert matcher.feed(make_zone())
    assert matcher.feed(make_zone(zone_id="z2"))
    assert matcher.pending("z1") is None
    assert [zone.zone_id for zone in fired] == ["z2"]
