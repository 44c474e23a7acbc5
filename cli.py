from __future__ import annotations

import argparse
import json
import random
import signal
import sys

import requests

from bubble import db
from bubble.durations import format_duration, parse_duration
from bubble.errors import ChurnError, DriverError, FormatError
from bubble.ratio import parse as parse_ratio
from bubble.ratio import render
from bubble.settings import settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _ratio_arg(raw: str):
    try:
        return parse_ratio(raw)
    except FormatError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _duration_arg(raw: str) -> float:
    try:
        return parse_duration(raw)
    except FormatError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Periodically clone and remove containers of one image (chaos churn)")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Run the churn loop")
    s_run.add_argument(
        "-i",
        "--image",
        default=settings.image,
        required=not settings.image,
        help="containers based on this image will be cloned and removed",
    )
    s_run.add_argument("-f", "--freq", type=_duration_arg, default=settings.freq, help="tick frequency, e.g. 30s, 1m, 1h30m")
    s_run.add_argument(
        "-r",
        "--ratio",
        type=_ratio_arg,
        default=settings.ratio,
        help="ratio: x creations : y deletions per tick, e.g. 1:2, 2:1, 1:1",
    )
    s_run.add_argument("--stop-timeout", type=int, default=settings.stop_timeout_s, help="seconds to wait before killing on stop")
    s_run.add_argument("--wait-timeout", type=int, default=settings.wait_timeout_s, help="give up waiting for a stop after N seconds (0 = never)")
    s_run.add_argument(
        "--no-replacement",
        action="store_true",
        default=not settings.sample_with_replacement,
        help="never pick the same container twice for removal within one tick",
    )
    s_run.add_argument("--seed", type=int, default=settings.seed, help="seed the random source for reproducible runs")
    s_run.add_argument("--once", action="store_true", help="run a single churn step and exit")
    s_run.add_argument("--db", default=settings.db_path, help="SQLite event log path")
    s_run.add_argument("--log-level", default=settings.log_level)
    s_run.add_argument("--api-host", default=settings.api_host)
    s_run.add_argument("--api-port", type=int, default=settings.api_port, help="serve the status API on this port (0 = off)")

    api_default = f"http://{settings.api_host}:{settings.api_port or 8000}"
    s_status = sub.add_parser("status", help="Show scheduler status from a running instance")
    s_status.add_argument("--api", default=api_default, help="status API base URL")

    s_ev = sub.add_parser("events", help="Show recent events")
    s_ev.add_argument("--api", default=api_default, help="status API base URL")
    s_ev.add_argument("--limit", type=int, default=20)

    s_steps = sub.add_parser("steps", help="Show recent churn steps")
    s_steps.add_argument("--api", default=api_default, help="status API base URL")
    s_steps.add_argument("--limit", type=int, default=10)

    return p


def run(args: argparse.Namespace) -> int:
    # docker-py and the scheduler are only needed by `run`.
    from bubble.docker_ops import DockerDriver
    from bubble.scheduler import Scheduler

    db.set_db_path(args.db)
    db.configure_logging(args.log_level)
    db.init_db()

    try:
        driver = DockerDriver(wait_timeout_s=args.wait_timeout)
        driver.ping()
    except DriverError as e:
        db.log_event("ERROR", f"could not start docker client: {e}")
        return 1

    sched = Scheduler(
        driver,
        args.image,
        args.ratio,
        args.freq,
        rng=random.Random(args.seed),
        replacement=not args.no_replacement,
        stop_timeout=args.stop_timeout,
    )

    try:
        if args.once:
            report = sched.tick()
            return 0 if report is not None and report.ok else 1

        if args.api_port:
            from bubble.api import serve_in_background

            serve_in_background(sched.runtime, args.api_host, args.api_port)

        def _on_signal(signum, frame) -> None:
            sched.stop()

        signal.signal(signal.SIGTERM, _on_signal)
        signal.signal(signal.SIGINT, _on_signal)

        db.log_event(
            "INFO",
            f"churning every {format_duration(args.freq)} with ratio {render(sched.ratio)}",
            image=args.image,
        )
        sched.run_forever()
        return 0
    finally:
        driver.close()


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.cmd == "run":
        if not args.image:
            p.error("could not start application, image argument is empty.")
        try:
            return run(args)
        except (ChurnError, ValueError) as e:
            print(f"error: {e}", file=sys.stderr)
            return 1

    base = args.api.rstrip("/")

    if args.cmd == "status":
        r = requests.get(f"{base}/status", timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        r = requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "steps":
        r = requests.get(f"{base}/steps", params={"limit": args.limit}, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
