from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

import yaml

from .config import load_config
from .dashboard import Dashboard
from .logging_config import setup_logging
from .registry import CapabilityRegistry
from .scheduler import PollScheduler
from .status import StatusAggregate, StatusMap
from .widgets import register_builtin

log = logging.getLogger(__name__)

def _parse_pairs(pairs: list[str]) -> dict:
    config = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise SystemExit(f"Expected KEY=VALUE, got {pair!r}")
        # YAML scalars so numbers and booleans come through typed
        config[key] = yaml.safe_load(value) if value else ""
    return config

def _format_row(rec) -> str:
    latency = f"{rec.latency:.0f}ms" if rec.latency is not None else "-"
    line = f"{str(rec.id):>6}  {rec.name:<24} {rec.state:<8} {latency:>8}"
    return f"{line}  {rec.error}" if rec.error else line

def _log_changes():
    last: dict = {}

    def listener(statuses: StatusMap) -> None:
        for iid, rec in statuses.items():
            prev = last.get(iid)
            if prev is None or prev.state != rec.state or prev.error != rec.error:
                log.info("%s (%s) is %s%s", rec.name, iid, rec.state, f": {rec.error}" if rec.error else "")
        for iid in set(last) - set(statuses):
            log.info("%s (%s) has no current status", last[iid].name, iid)
        last.clear()
        last.update(statuses)

    return listener

async def _run(dash: Dashboard) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            pass
    unsubscribe = dash.subscribe_status(_log_changes())
    try:
        await dash.run(stop)
    finally:
        unsubscribe()

def cmd_run(args) -> int:
    cfg = load_config(args.config)
    asyncio.run(_run(Dashboard.from_config(cfg)))
    return 0

def cmd_once(args) -> int:
    cfg = load_config(args.config)
    dash = Dashboard.from_config(cfg)
    data = asyncio.run(dash.collect_all())
    for rec in data.results:
        print(_format_row(rec))
    for iid in data.missing:
        print(f"{str(iid):>6}  {'(no response)':<24} {'-':<8}")
    return 1 if data.missing else 0

def cmd_plugins(args) -> int:
    registry = register_builtin(CapabilityRegistry())
    found = registry.list_by_category(args.category) if args.category else registry.all()
    for d in found:
        print(f"{d.id:<10} {d.metadata.category:<11} {d.metadata.name} - {d.metadata.description}")
    return 0

def cmd_test(args) -> int:
    cfg = load_config(args.config) if args.config_given else None
    registry = register_builtin(CapabilityRegistry())
    timeout = cfg.fetch_timeout if cfg else 15
    config = _parse_pairs(args.pairs)
    scheduler = PollScheduler(registry, StatusAggregate(), fetch_timeout=timeout)
    outcome = asyncio.run(scheduler.probe(args.type, config))
    descriptor = registry.get(args.type)
    shown = descriptor.redact(config) if descriptor else config
    print(f"{args.type} {shown}: {outcome.kind.value}" + (f" ({outcome.error})" if outcome.error else ""))
    return 0 if not outcome.error else 1

def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="statusboard")
    ap.add_argument("--config", default=None, help="Path to config.yaml")
    ap.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Override logging.level from config")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Poll every enabled widget until interrupted").set_defaults(func=cmd_run)
    sub.add_parser("once", help="Fetch every enabled widget once and print the results").set_defaults(func=cmd_once)

    p = sub.add_parser("plugins", help="List available integrations")
    p.add_argument("--category", help="Only list integrations in this category")
    p.set_defaults(func=cmd_plugins)

    p = sub.add_parser("test", help="Test an integration configuration without saving it")
    p.add_argument("type", help="Integration type id, e.g. http")
    p.add_argument("pairs", nargs="*", metavar="KEY=VALUE", help="Configuration values")
    p.set_defaults(func=cmd_test)

    args = ap.parse_args(argv)
    args.config_given = args.config is not None
    if args.config is None:
        args.config = "config.yaml"

    level = getattr(logging, args.log_level) if args.log_level else logging.INFO
    log_file = None
    if args.command in ("run", "once"):
        cfg = load_config(args.config)
        level = getattr(logging, args.log_level) if args.log_level else cfg.log_level
        log_file = cfg.log_file
    setup_logging("statusboard", level=level, log_file=log_file)

    return args.func(args)

if __name__ == "__main__":
    sys.exit(main())
