from __future__ import annotations

import argparse
import json
import sys

from vsn.app.runner import run
from vsn.features.classifier.service import classify
from vsn.features.classifier.types import AuxSignals
from vsn.features.persistence.duckdb_adapter import DuckDBAdapter
from vsn.features.settings.service import SettingsService
from vsn.features.settings.stores import DuckDBSettingsStore, InMemorySettingsStore
from vsn.features.settings.types import KeywordListError

DEFAULT_DB = "data/vsn.duckdb"


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in ("true", "1", "yes", "on"):
        return True
    if v in ("false", "0", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected a boolean, got {value!r}")


def _open_settings(db: str | None) -> tuple[SettingsService, DuckDBAdapter | None]:
    if db is None:
        return SettingsService(InMemorySettingsStore()), None
    adapter = DuckDBAdapter(path=db, clean_slate=False)
    adapter.open()
    return SettingsService(DuckDBSettingsStore(adapter)), adapter


def _cmd_classify(args: argparse.Namespace) -> int:
    settings, adapter = _open_settings(args.db)
    try:
        criteria = settings.load_criteria()
    finally:
        if adapter is not None:
            adapter.close()

    result = classify(
        args.title,
        args.channel,
        criteria,
        AuxSignals(official_badge=args.badge, music_section=args.music_section),
    )
    print(f"match={str(result.is_match).lower()} rule={result.rule.value}")
    return 0


def _cmd_keywords(args: argparse.Namespace) -> int:
    settings, adapter = _open_settings(args.db)
    try:
        if args.action == "list":
            for kw in settings.keywords(exclude=args.exclude):
                print(kw)
            return 0

        if args.action == "add":
            added = settings.add_keyword(args.keyword, exclude=args.exclude)
            print("added" if added else "unchanged")
            return 0

        if args.action == "remove":
            try:
                removed = settings.remove_keyword(args.keyword, exclude=args.exclude, force=args.force)
            except KeywordListError as e:
                print(f"error: {e}", file=sys.stderr)
                return 2
            print("removed" if removed else "not found")
            return 0

        if args.action == "reset":
            settings.reset_keywords(exclude=args.exclude)
            print("reset")
            return 0
    finally:
        if adapter is not None:
            adapter.close()

    return 1


def _cmd_settings(args: argparse.Namespace) -> int:
    settings, adapter = _open_settings(args.db)
    try:
        if args.action == "show":
            print(json.dumps(settings.snapshot(), ensure_ascii=False, indent=2))
            return 0

        if args.action == "set":
            try:
                settings.set_flag(args.name, args.value)
            except ValueError as e:
                print(f"error: {e}", file=sys.stderr)
                return 2
            print(f"{args.name}={str(args.value).lower()}")
            return 0
    finally:
        if adapter is not None:
            adapter.close()

    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="vsn")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Replay a playback scenario through the engine")
    p_run.add_argument("--config", default="config/scenario.yaml")

    p_cls = sub.add_parser("classify", help="Classify a single title/channel pair")
    p_cls.add_argument("--title", required=True)
    p_cls.add_argument("--channel", default=None)
    p_cls.add_argument("--badge", action="store_true", help="Channel carries the official-artist badge")
    p_cls.add_argument("--music-section", action="store_true", help="Description has a Music section")
    p_cls.add_argument("--db", default=None, help="Read criteria from this DuckDB file")

    p_kw = sub.add_parser("keywords", help="Manage include/exclude keyword lists")
    p_kw.add_argument("--db", default=DEFAULT_DB)
    p_kw.add_argument("--exclude", action="store_true", help="Operate on the exclude list")
    kw_sub = p_kw.add_subparsers(dest="action", required=True)
    kw_sub.add_parser("list")
    p_add = kw_sub.add_parser("add")
    p_add.add_argument("keyword")
    p_rm = kw_sub.add_parser("remove")
    p_rm.add_argument("keyword")
    p_rm.add_argument("--force", action="store_true", help="Allow emptying the include list")
    kw_sub.add_parser("reset")

    p_set = sub.add_parser("settings", help="Show or change matching flags")
    p_set.add_argument("--db", default=DEFAULT_DB)
    set_sub = p_set.add_subparsers(dest="action", required=True)
    set_sub.add_parser("show")
    p_flag = set_sub.add_parser("set")
    p_flag.add_argument("name")
    p_flag.add_argument("value", type=_parse_bool)

    args = parser.parse_args(argv)

    if args.cmd == "run":
        result = run(args.config)
        # minimal stdout signal
        print(
            f"run_id={result.ctx.run_id} duckdb={result.duckdb_path} "
            f"final_rate={result.final_rate} writes={len(result.rate_writes)}"
        )
        return 0

    if args.cmd == "classify":
        return _cmd_classify(args)

    if args.cmd == "keywords":
        return _cmd_keywords(args)

    if args.cmd == "settings":
        return _cmd_settings(args)

    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
