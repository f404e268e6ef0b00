import argparse
import json

from .config import ConfigResolver
from .errors import PetSyncError
from .logging_setup import init_logging
from .pipeline import build_pipeline


def _pipeline(strict: bool):
    config = ConfigResolver(strict=strict).resolve()
    init_logging(config.log_level)
    pipeline = build_pipeline(config)
    pipeline.scheduler.store.init_db()
    return pipeline


def _triggers(pipeline) -> list[dict]:
    return [
        {"id": t.id, "handler": t.handler, "period_minutes": t.period_minutes}
        for t in pipeline.scheduler.triggers(pipeline.config.trigger_name)
    ]


def main(argv=None):
    ap = argparse.ArgumentParser(prog="petsync")
    ap.add_argument("--strict", action="store_true", help="reject unknown config keys")
    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("fetch", help="fetch records and write them to the sheet")
    trig = sub.add_parser("trigger", help="manage the recurring sync trigger")
    trig_sub = trig.add_subparsers(dest="action", required=True)
    set_p = trig_sub.add_parser("set")
    set_p.add_argument("--minutes", type=int, default=None, help="defaults to TRIGGER_PERIOD_MINUTES")
    trig_sub.add_parser("remove")
    trig_sub.add_parser("list")
    a = ap.parse_args(argv)

    try:
        pipeline = _pipeline(a.strict)
        if a.command == "fetch":
            result = pipeline.run()
            print(result.message)
        elif a.action == "set":
            minutes = a.minutes if a.minutes is not None else pipeline.config.trigger_period_minutes
            pipeline.scheduler.configure(pipeline.config.trigger_name, minutes)
            print(json.dumps(_triggers(pipeline)))
        elif a.action == "remove":
            pipeline.scheduler.configure(pipeline.config.trigger_name, enabled=False)
            print("Trigger removed")
        else:
            print(json.dumps(_triggers(pipeline)))
    except (PetSyncError, ValueError) as exc:
        print(f"error: {exc}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
