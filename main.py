from __future__ import annotations

import argparse
import sys
from dataclasses import replace

from fastapi import FastAPI

from vsched import db
from vsched.app import create_app
from vsched.docker_ops import DockerDriver
from vsched.reconciler import Reconciler
from vsched.scheduler import ViewerScheduler
from vsched.settings import Settings, parse_targets, settings


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Viewer Fleet Scheduler")
    p.add_argument("--orchestrator", default=settings.orchestrator_url, help="Docker daemon URL (unix:///var/run/docker.sock)")
    p.add_argument("--targets", default=settings.targets, help="Upstream URLs, ';'-separated (http://es1:9200;http://es2:9200)")
    p.add_argument("--api-port", type=int, default=settings.api_port, help="Port for the JSON management API (9001)")
    p.add_argument("--image", default=settings.image, help="Viewer docker image")
    return p


def build(argv: list[str] | None = None) -> tuple[Settings, FastAPI]:
    """Parse arguments and wire scheduler, driver and API together.

    Configuration problems exit via argparse before anything starts.
    """
    p = build_parser()
    args = p.parse_args(argv)

    if not args.orchestrator:
        p.error("an orchestrator address is required (--orchestrator or VSCHED_ORCHESTRATOR_URL)")
    if not 1 <= args.api_port <= 65535:
        p.error(f"--api-port must be between 1 and 65535, got {args.api_port}")
    targets = parse_targets(args.targets)
    if args.targets and args.targets.strip() and not targets:
        p.error(f"--targets has no usable entries: {args.targets!r}")

    cfg = replace(settings, orchestrator_url=args.orchestrator, api_port=args.api_port, image=args.image, targets=";".join(targets))

    db.init_db()
    scheduler = ViewerScheduler(cfg)
    for target in targets:
        scheduler.change_requirement(target, 1)

    driver = DockerDriver(cfg=cfg)
    reconciler = Reconciler(scheduler, driver, poll_interval_s=cfg.poll_interval_s)
    return cfg, create_app(scheduler, reconciler)


def main(argv: list[str] | None = None) -> int:
    import uvicorn

    cfg, app = build(argv)
    uvicorn.run(app, host="0.0.0.0", port=cfg.api_port, reload=False)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
