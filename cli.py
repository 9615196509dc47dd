from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Viewer Fleet Scheduler CLI")
    p.add_argument("--api", default="http://localhost:9001", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("requirements", help="List required/running instances per target")
    sub.add_parser("tasks", help="List live tasks")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    s_chg = sub.add_parser("change", help="Change the required instance count for a target")
    s_chg.add_argument("--target", required=True)
    s_chg.add_argument("--delta", type=int, required=True, help="Instances to add; negative to remove")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "requirements":
        _print(requests.get(f"{base}/requirements", timeout=10).json())
        return 0

    if args.cmd == "tasks":
        _print(requests.get(f"{base}/tasks", timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "change":
        payload = {"target": args.target, "delta": args.delta}
        r = requests.post(f"{base}/requirements", json=payload, timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
