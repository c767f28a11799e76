#!/usr/bin/env python3
"""Drive the posture monitoring API from a shell."""
from __future__ import annotations

import argparse
import json
from typing import Any

import requests


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Posture monitoring commands")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000", help="Backend URL (default: %(default)s)")
    parser.add_argument("--token", help="X-API-Key if required", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    baseline = sub.add_parser("baseline", help="Save or reset the ideal posture")
    baseline.add_argument("action", choices=["save", "reset", "show"])

    session = sub.add_parser("session", help="Start/stop monitoring")
    session.add_argument("action", choices=["start", "stop", "status", "evidence", "history"])

    delay = sub.add_parser("delay", help="Set the alert delay in seconds")
    delay.add_argument("seconds", type=float)

    sub.add_parser("frame", help="Classify one frame from the server camera")
    return parser.parse_args()


def _request(method: str, url: str, headers: dict[str, str], payload: dict[str, Any] | None = None) -> dict:
    resp = requests.request(method, url, headers=headers, data=json.dumps(payload) if payload is not None else None, timeout=10)
    resp.raise_for_status()
    return resp.json()


def main() -> None:
    args = parse_args()
    headers = {"Content-Type": "application/json"}
    if args.token:
        headers["X-API-Key"] = args.token
    base = args.base_url.rstrip("/")

    if args.command == "baseline":
        method = {"save": "POST", "reset": "DELETE", "show": "GET"}[args.action]
        data = _request(method, f"{base}/baseline", headers)
    elif args.command == "session":
        if args.action in ("start", "stop"):
            data = _request("POST", f"{base}/session/{args.action}", headers)
        else:
            data = _request("GET", f"{base}/session/{args.action}", headers)
    elif args.command == "delay":
        data = _request("POST", f"{base}/config", headers, {"alert_delay_sec": args.seconds})
    else:
        data = _request("POST", f"{base}/posture", headers, {})

    if not data.get("success", False):
        raise SystemExit(f"Backend error: {data}")
    print(json.dumps(data["data"], indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
