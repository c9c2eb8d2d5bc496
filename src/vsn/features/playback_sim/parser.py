from __future__ import annotations

from typing import Any

from .types import (
    Action,
    AttachStep,
    MutateStep,
    NavigateStep,
    ScenarioConfig,
    TimelineStep,
    UserRateStep,
    VisibilityStep,
)

_ACTION_KEYS = ("navigate", "user_rate", "visibility", "mutate", "attach")


def _float(path: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise TypeError(f"{path} must be numeric") from e


def _parse_navigate(path: str, raw: Any) -> NavigateStep:
    if not isinstance(raw, dict):
        raise TypeError(f"{path}.navigate must be a mapping/dict")
    url = raw.get("url")
    if not isinstance(url, str) or not url:
        raise ValueError(f"{path}.navigate.url must be a non-empty string")

    headers = raw.get("section_headers") or []
    if not isinstance(headers, list):
        raise TypeError(f"{path}.navigate.section_headers must be a list")

    finish = _float(f"{path}.navigate.finish_delay_s", raw.get("finish_delay_s", 0.05))
    metadata = _float(f"{path}.navigate.metadata_delay_s", raw.get("metadata_delay_s", 0.3))
    if finish < 0 or metadata < 0:
        raise ValueError(f"{path}.navigate delays must be >= 0")

    return NavigateStep(
        url=url,
        title=None if raw.get("title") is None else str(raw["title"]),
        channel=None if raw.get("channel") is None else str(raw["channel"]),
        official_badge=bool(raw.get("official_badge", False)),
        section_headers=tuple(str(h) for h in headers),
        finish_delay_s=finish,
        metadata_delay_s=metadata,
    )


def _parse_action(path: str, raw: dict[str, Any]) -> Action:
    present = [k for k in _ACTION_KEYS if k in raw]
    if len(present) != 1:
        raise ValueError(f"{path} must have exactly one of {list(_ACTION_KEYS)}, got {present}")
    key = present[0]

    if key == "navigate":
        return _parse_navigate(path, raw["navigate"])

    if key == "user_rate":
        rate = _float(f"{path}.user_rate", raw["user_rate"])
        if rate <= 0:
            raise ValueError(f"{path}.user_rate must be > 0")
        return UserRateStep(rate=rate)

    if key == "visibility":
        value = str(raw["visibility"]).strip().lower()
        if value not in ("hidden", "visible"):
            raise ValueError(f"{path}.visibility must be 'hidden' or 'visible'")
        return VisibilityStep(hidden=value == "hidden")

    if key == "mutate":
        m = raw["mutate"] or {}
        if not isinstance(m, dict):
            raise TypeError(f"{path}.mutate must be a mapping/dict")
        return MutateStep(
            title=None if m.get("title") is None else str(m["title"]),
            channel=None if m.get("channel") is None else str(m["channel"]),
        )

    return AttachStep()


def parse_scenario(raw: dict[str, Any] | None) -> ScenarioConfig:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise TypeError("scenario must be a mapping/dict")

    settings = raw.get("settings") or {}
    if not isinstance(settings, dict):
        raise TypeError("scenario.settings must be a mapping/dict")

    timeline = raw.get("timeline") or []
    if not isinstance(timeline, list):
        raise TypeError("scenario.timeline must be a list")

    steps: list[TimelineStep] = []
    for i, item in enumerate(timeline):
        path = f"scenario.timeline[{i}]"
        if not isinstance(item, dict):
            raise TypeError(f"{path} must be a mapping/dict")
        at = _float(f"{path}.at", item.get("at", 0.0))
        if at < 0:
            raise ValueError(f"{path}.at must be >= 0")
        steps.append(TimelineStep(at=at, action=_parse_action(path, item)))

    # stable: equal timestamps keep file order
    steps.sort(key=lambda s: s.at)

    initial_rate = _float("scenario.initial_rate", raw.get("initial_rate", 1.0))
    if initial_rate <= 0:
        raise ValueError("scenario.initial_rate must be > 0")

    return ScenarioConfig(
        initial_rate=initial_rate,
        attach_at_start=bool(raw.get("attach_at_start", True)),
        report_origin=bool(raw.get("report_origin", True)),
        settings=dict(settings),
        steps=tuple(steps),
    )
