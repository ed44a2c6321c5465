"""
Acceptance smoke checks for the fulfillment service.

Usage:
  STATE_BACKEND=database DATABASE_URL=sqlite:///./data/acceptance_orders.db PYTHONPATH=src python scripts/acceptance_smoke.py
  STATE_BACKEND=database ... python scripts/acceptance_smoke.py --with-worker
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from typing import Callable

from fastapi.testclient import TestClient


@dataclass
class CheckResult:
    name: str
    passed: bool
    detail: str


def _ok(name: str, detail: str) -> CheckResult:
    return CheckResult(name=name, passed=True, detail=detail)


def _fail(name: str, detail: str) -> CheckResult:
    return CheckResult(name=name, passed=False, detail=detail)


def run_check(name: str, fn: Callable[[], CheckResult]) -> CheckResult:
    try:
        return fn()
    except Exception as exc:  # pragma: no cover - smoke tool
        return _fail(name, f"exception: {exc}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run acceptance smoke checks.")
    parser.add_argument(
        "--with-worker",
        action="store_true",
        help="Run a dry-run worker pass against the configured state store.",
    )
    args = parser.parse_args()

    os.environ.setdefault("STATE_BACKEND", "database")
    os.environ.setdefault("DATABASE_URL", "sqlite:///./data/acceptance_orders.db")
    os.environ.setdefault("NO_PROXY", "*")

    from myname_fulfillment.main import app
    from myname_fulfillment.core import get_settings

    client = TestClient(app)
    results: list[CheckResult] = []

    def check_root() -> CheckResult:
        resp = client.get("/")
        if resp.status_code != 200:
            return _fail("GET /", f"status={resp.status_code}, body={resp.text[:200]}")
        return _ok("GET /", "healthy")

    def check_health() -> CheckResult:
        resp = client.get("/health")
        if resp.status_code != 200:
            return _fail("GET /health", f"status={resp.status_code}, body={resp.text[:200]}")
        return _ok("GET /health", "healthy")

    def check_webhook_probe() -> CheckResult:
        resp = client.get("/api/webhook")
        if resp.status_code != 200 or resp.json().get("ok") is not True:
            return _fail("GET /api/webhook", f"status={resp.status_code}, body={resp.text[:200]}")
        return _ok("GET /api/webhook", f"configured={resp.json().get('configured')}")

    def check_unsigned_webhook_rejected() -> CheckResult:
        resp = client.post("/api/webhook", content=b"{}")
        if resp.status_code != 400:
            return _fail("POST /api/webhook (unsigned)", f"expected 400, got {resp.status_code}")
        return _ok("POST /api/webhook (unsigned)", "rejected with 400")

    def check_worker_dry_run() -> CheckResult:
        headers = {}
        cron_secret = get_settings().cron_secret
        if cron_secret:
            headers["Authorization"] = f"Bearer {cron_secret}"
        resp = client.get("/api/worker", params={"dry": "1"}, headers=headers)
        if resp.status_code != 200:
            return _fail("GET /api/worker?dry=1", f"status={resp.status_code}, body={resp.text[:200]}")
        return _ok("GET /api/worker?dry=1", f"would process {len(resp.json().get('wouldProcess', []))}")

    checks: list[tuple[str, Callable[[], CheckResult]]] = [
        ("GET /", check_root),
        ("GET /health", check_health),
        ("GET /api/webhook", check_webhook_probe),
        ("POST /api/webhook (unsigned)", check_unsigned_webhook_rejected),
    ]
    if args.with_worker:
        checks.append(("GET /api/worker?dry=1", check_worker_dry_run))

    for name, fn in checks:
        results.append(run_check(name, fn))

    failed = [r for r in results if not r.passed]
    for r in results:
        mark = "PASS" if r.passed else "FAIL"
        print(f"[{mark}] {r.name}: {r.detail}")

    print(f"\n{len(results) - len(failed)}/{len(results)} checks passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
