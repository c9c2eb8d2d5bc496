from __future__ import annotations

import pytest
import simpy

from vsn.core.config import EngineConfig
from vsn.core.types import RateOrigin
from vsn.features.classifier.types import MatchRule
from vsn.features.playback_sim.parser import parse_scenario
from vsn.features.playback_sim.service import ScenarioDriver, SimulatedPage
from vsn.features.runtime.service import EngineRuntime
from vsn.features.settings.service import SettingsService
from vsn.features.settings.stores import InMemorySettingsStore

LECTURE_1 = {
    "url": "https://www.youtube.com/watch?v=lec1",
    "title": "Linear Algebra Lecture 3",
    "channel": "Math Dept",
}
LECTURE_2 = {
    "url": "https://www.youtube.com/watch?v=lec2",
    "title": "Linear Algebra Lecture 4",
    "channel": "Math Dept",
}
MUSIC_VIDEO = {
    "url": "https://www.youtube.com/watch?v=mv1",
    "title": "Some Artist - Night Drive",
    "channel": "Some Artist",
    "official_badge": True,
}


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[dict] = []

    def emit(self, **kw) -> None:
        self.events.append(kw)

    def of_type(self, event_type: str) -> list[dict]:
        return [e for e in self.events if e["event_type"] == event_type]


def _run(timeline, *, until: float, latency_s: float = 0.0, **scenario):
    env = simpy.Environment()
    sc = parse_scenario({"timeline": timeline, **scenario})
    page = SimulatedPage(env, initial_rate=sc.initial_rate, report_origin=sc.report_origin)
    settings = SettingsService(InMemorySettingsStore(dict(sc.settings)), latency_s=latency_s)
    sink = RecordingSink()
    runtime = EngineRuntime(
        env=env, metadata=page, settings=settings, cfg=EngineConfig(), events=sink
    )
    ScenarioDriver(env=env, page=page, signals=runtime, scenario=sc).start()
    env.run(until=until)
    return runtime, page, sink


def _rates(page):
    return [(w.rate, w.origin) for w in page.writes]


def test_learned_default_is_restored_after_music_video():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": LECTURE_1},
            {"at": 3.0, "user_rate": 1.75},
            {"at": 10.0, "navigate": MUSIC_VIDEO},
            {"at": 20.0, "navigate": LECTURE_2},
        ],
        until=30.0,
    )

    assert _rates(page) == [
        (1.75, RateOrigin.USER),
        (1.0, RateOrigin.ENGINE),
        (1.75, RateOrigin.ENGINE),
    ]
    assert page.rate == 1.75
    assert runtime.state.user_default_rate == 1.75
    assert len(sink.of_type("user_default_learned")) == 1

    rules = [e["rule"] for e in sink.of_type("classified")]
    assert rules == ["no_match", "official_badge", "no_match"]


def test_faster_starting_rate_is_captured_and_restored():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": LECTURE_1},
            {"at": 5.0, "navigate": MUSIC_VIDEO},
            {"at": 10.0, "navigate": LECTURE_2},
        ],
        until=20.0,
        initial_rate=1.5,
    )

    assert [w.rate for w in page.writes] == [1.0, 1.5]
    assert sink.of_type("user_default_captured")[0]["rate"] == 1.5
    assert runtime.state.user_default_rate == 1.5


def test_user_override_on_music_video_stops_engine_writes():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": MUSIC_VIDEO},
            {"at": 2.0, "user_rate": 2.0},
            {"at": 3.0, "visibility": "hidden"},
            {"at": 4.0, "visibility": "visible"},
            {"at": 5.0, "mutate": {"title": "Some Artist - Night Drive (Live)"}},
        ],
        until=10.0,
    )

    assert _rates(page) == [(2.0, RateOrigin.USER)]
    assert page.rate == 2.0
    assert runtime.state.override.active
    # a match never teaches a default
    assert runtime.state.user_default_rate is None
    assert len(sink.of_type("override_active")) == 2


def test_engine_echo_is_not_an_override_without_origin_tags():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": LECTURE_1},
            {"at": 5.0, "navigate": MUSIC_VIDEO},
            {"at": 10.0, "navigate": LECTURE_2},
        ],
        until=20.0,
        initial_rate=1.5,
        report_origin=False,
    )

    assert [w.rate for w in page.writes] == [1.0, 1.5]
    assert sink.of_type("override") == []
    assert not runtime.state.override.active


def test_guard_holds_normal_rate_across_switch_from_music_video():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": MUSIC_VIDEO},
            {"at": 2.0, "user_rate": 2.0},
            {"at": 5.0, "navigate": LECTURE_1},
        ],
        until=15.0,
        report_origin=False,
    )

    assert [(w.sim_time_s, w.rate) for w in page.writes] == [(2.0, 2.0), (5.0, 1.0)]
    (write,) = [e for e in sink.of_type("rate_write") if e["payload"]["reason"] == "provisional_lock"]
    assert write["sim_time_s"] == 5.0

    assert len(sink.of_type("guard_forced")) == 1
    released = sink.of_type("guard_released")
    assert [e["payload"]["reason"] for e in released] == ["classified"]
    assert not runtime.state.guard.forced
    assert page.rate == 1.0


def test_guard_fails_open_at_ceiling():
    runtime, _, sink = _run(
        [
            {"at": 0.0, "navigate": MUSIC_VIDEO},
            {"at": 5.0, "navigate": {"url": "https://www.youtube.com/watch?v=blank", "channel": "X"}},
        ],
        until=20.0,
    )

    (released,) = sink.of_type("guard_released")
    assert released["payload"]["reason"] == "ceiling"
    assert released["sim_time_s"] == pytest.approx(10.0)
    assert not runtime.state.guard.forced


def test_leaving_content_page_releases_guard():
    runtime, _, sink = _run(
        [
            {"at": 0.0, "navigate": MUSIC_VIDEO},
            {"at": 5.0, "navigate": {"url": "https://www.youtube.com/", "title": "Home"}},
        ],
        until=8.0,
    )

    (released,) = sink.of_type("guard_released")
    assert released["payload"]["reason"] == "left_content"
    assert not runtime.state.guard.forced


def test_readiness_gives_up_after_ten_polls():
    runtime, page, sink = _run(
        [{"at": 0.0, "navigate": {"url": "https://www.youtube.com/watch?v=blank", "channel": "X"}}],
        until=20.0,
        initial_rate=1.5,
    )

    (gave_up,) = sink.of_type("readiness_gave_up")
    assert gave_up["payload"]["attempts"] == 10
    assert gave_up["sim_time_s"] == pytest.approx(0.05 + 9 * 0.5)
    assert sink.of_type("classified") == []
    assert page.writes == []


def test_in_flight_reconcile_for_previous_item_is_dropped():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": MUSIC_VIDEO},
            # switch while the music video's settings read is still pending
            {"at": 0.7, "navigate": {**LECTURE_1, "metadata_delay_s": 0.3}},
        ],
        until=10.0,
        latency_s=0.5,
        initial_rate=1.5,
    )

    assert page.writes == []
    assert [e["rule"] for e in sink.of_type("classified")] == ["no_match"]
    assert runtime.state.last_result.rule is MatchRule.NO_MATCH
    assert runtime.state.user_default_rate == 1.5


def test_learning_for_previous_item_is_discarded_as_stale():
    runtime, _, sink = _run(
        [
            {"at": 0.0, "navigate": LECTURE_1},
            {"at": 2.0, "user_rate": 1.75},
            {"at": 2.1, "navigate": LECTURE_2},
        ],
        until=10.0,
        latency_s=0.5,
    )

    stale = [e for e in sink.of_type("stale_discarded") if e["payload"]["task"] == "learn_default"]
    assert len(stale) == 1
    assert stale[0]["payload"]["stale_content_id"] == "lec1"
    assert sink.of_type("user_default_learned") == []


def test_excluded_keyword_keeps_learned_default():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": LECTURE_1},
            {"at": 3.0, "user_rate": 1.75},
            {
                "at": 10.0,
                "navigate": {
                    "url": "https://www.youtube.com/watch?v=pod1",
                    "title": "Host - Weekly Podcast #12",
                    "channel": "Talk Radio",
                },
            },
        ],
        until=20.0,
        settings={"excludeKeywords": ["podcast"]},
    )

    assert sink.of_type("classified")[-1]["rule"] == "excluded"
    assert page.rate == 1.75
    assert _rates(page) == [(1.75, RateOrigin.USER)]


def test_ambient_rate_on_vlog_is_captured_then_restored():
    vlog = {
        "url": "https://www.youtube.com/watch?v=vlog12",
        "title": "Weekly Vlog Day 12",
        "channel": "SomeVlogger",
    }
    vlog_13 = {**vlog, "url": "https://www.youtube.com/watch?v=vlog13", "title": "Weekly Vlog Day 13"}
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": vlog},
            {"at": 5.0, "navigate": MUSIC_VIDEO},
            {"at": 10.0, "navigate": vlog_13},
        ],
        until=20.0,
        initial_rate=1.5,
    )

    assert sink.of_type("classified")[0]["rule"] == "no_match"
    assert runtime.state.user_default_rate == 1.5
    assert [w.rate for w in page.writes] == [1.0, 1.5]
    assert page.rate == 1.5


def test_user_rate_on_non_match_blocks_further_writes():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": LECTURE_1},
            {"at": 2.0, "user_rate": 2.0},
            {"at": 3.0, "visibility": "hidden"},
            {"at": 4.0, "visibility": "visible"},
            {"at": 5.0, "mutate": {"title": "Linear Algebra Lecture 3 (updated)"}},
        ],
        until=10.0,
        initial_rate=1.5,
    )

    assert runtime.state.override.active
    assert runtime.state.user_default_rate == 2.0
    assert _rates(page) == [(2.0, RateOrigin.USER)]
    assert len(sink.of_type("override_active")) == 2


def test_reattaching_the_same_surface_reconciles_again():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": MUSIC_VIDEO},
            {"at": 3.0, "attach": True},
        ],
        until=5.0,
        initial_rate=1.25,
    )

    assert [e["sim_time_s"] for e in sink.of_type("classified")] == pytest.approx([0.55, 3.0])
    # already at the normalized rate the second time
    assert [w.rate for w in page.writes] == [1.0]


@pytest.mark.parametrize("report_origin", [True, False])
def test_user_change_right_after_lock_release_is_an_override(report_origin):
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": LECTURE_1},
            {"at": 3.0, "user_rate": 1.75},
            {"at": 10.0, "navigate": MUSIC_VIDEO},
            {"at": 15.0, "user_rate": 1.25},
            {"at": 20.0, "navigate": LECTURE_2},
            # lock released at 20.55, its ignore window still open until 21.5
            {"at": 21.0, "user_rate": 1.25},
            {"at": 22.0, "visibility": "hidden"},
            {"at": 23.0, "visibility": "visible"},
        ],
        until=30.0,
        report_origin=report_origin,
    )

    (released,) = sink.of_type("guard_released")
    assert released["sim_time_s"] == pytest.approx(20.55)
    assert [w.rate for w in page.writes] == [1.75, 1.0, 1.25, 1.0, 1.75, 1.25]
    assert page.rate == 1.25
    assert runtime.state.override.active
    assert runtime.state.override.user_rate == 1.25
    assert runtime.state.user_default_rate == 1.25
    assert sink.of_type("override_active")[-1]["sim_time_s"] == pytest.approx(23.1)


def test_queued_reconcile_for_outgoing_item_is_cancelled_on_navigation_start():
    runtime, page, sink = _run(
        [
            {"at": 0.0, "navigate": MUSIC_VIDEO},
            {"at": 2.0, "user_rate": 2.0},
            # debounced reconcile would land at 5.05, mid-transition
            {"at": 4.95, "visibility": "visible"},
            {"at": 5.0, "navigate": {**LECTURE_1, "finish_delay_s": 0.5}},
        ],
        until=10.0,
    )

    assert [e["content_id"] for e in sink.of_type("classified")] == ["mv1", "lec1"]
    assert len(sink.of_type("guard_forced")) == 1
    (released,) = sink.of_type("guard_released")
    assert released["content_id"] == "lec1"
    assert released["payload"]["reason"] == "classified"
    assert released["sim_time_s"] == pytest.approx(5.5)
    assert _rates(page) == [(2.0, RateOrigin.USER), (1.0, RateOrigin.ENGINE)]
