#!/usr/bin/env python3
"""
Run the periodic jobs once, without HTTP.

Usage:
  python3 scripts/run_jobs.py charges
  python3 scripts/run_jobs.py billing --date 2024-07-01
  python3 scripts/run_jobs.py all

Meant to be called by an external scheduler (cron, systemd timer). Both jobs
are safe to rerun: paid or cancelled bookings are never selected again and an
account already billed for the period is skipped.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from slotbook.core.config import settings
from slotbook.wiring.dependencies import close_adapters, get_auto_charge_scheduler, get_billing_aggregator


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run slotbook periodic jobs")
    parser.add_argument("job", choices=["charges", "billing", "all"])
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="billing date (YYYY-MM-DD)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )

    output: dict[str, object] = {}
    failed = False

    if args.job in {"charges", "all"}:
        try:
            charges = get_auto_charge_scheduler().run_once()
        finally:
            close_adapters()
        output["charges"] = charges.to_dict()
        failed = failed or any(not r.success for r in charges.results)

    if args.job in {"billing", "all"}:
        billing = get_billing_aggregator().run_once(args.date)
        output["billing"] = billing.to_dict()
        failed = failed or bool(billing.errors)

    print(json.dumps(output, indent=2))
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
