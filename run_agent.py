#!/usr/bin/env python3
"""Run the LinkedIn automation scheduler until interrupted.

    python run_agent.py                   # schedule everything, run forever
    python run_agent.py --once job_scrape # one run of one task, then exit
    python run_agent.py --fresh-start     # drop stored cookies before logging in
"""
from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from linkedin_agent.agent import build_agent
from linkedin_agent.config import load_settings
from linkedin_agent.errors import AgentError
from linkedin_agent.log import get_logger, set_level
from linkedin_agent.models import RunStatus, TaskKind

log = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LinkedIn job automation agent")
    parser.add_argument(
        "--once",
        metavar="TASK",
        choices=[k.value for k in TaskKind],
        help="run a single task synchronously and exit",
    )
    parser.add_argument("--fresh-start", action="store_true", help="discard stored session cookies first")
    parser.add_argument("--interactive", action="store_true", help="show the browser and wait for verification challenges")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug output on the console")
    return parser.parse_args(argv)


def _control_channel(agent, stop: threading.Event) -> None:
    """Read operator input from stdin; a line resolves a pending challenge."""
    gate = agent.sessions.gate
    for line in sys.stdin:
        if stop.is_set():
            return
        text = line.strip()
        if gate.pending is None:
            if text:
                log.info("No verification pending; ignoring input")
            continue
        gate.resolve(text or None)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.verbose:
        set_level("DEBUG")
    settings = load_settings()
    if args.fresh_start:
        settings.fresh_start = True
    if args.interactive:
        settings.headless = False

    agent = build_agent(settings)
    coordinator = agent.coordinator
    stop = threading.Event()

    if not settings.headless:
        threading.Thread(target=_control_channel, args=(agent, stop), name="control", daemon=True).start()

    if args.once:
        try:
            outcome = coordinator.run_now(args.once)
        finally:
            coordinator.shutdown()
        if outcome is None:
            return 1
        log.info(
            "%s finished: %s (%d processed, %d errors)",
            outcome.kind, outcome.status.value, outcome.items_processed, outcome.errors_count,
        )
        return 0 if outcome.status is not RunStatus.ERROR else 1

    def _handle_signal(signum, _frame) -> None:
        log.info("Received signal %d, shutting down", signum)
        stop.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        coordinator.start()
    except AgentError as exc:
        log.error("Could not start: %s", exc)
        coordinator.shutdown()
        return 1

    log.info("Agent running. Press Ctrl+C to stop.")
    while not stop.wait(1.0):
        pass
    return 0 if coordinator.shutdown() else 2


if __name__ == "__main__":
    sys.exit(main())
