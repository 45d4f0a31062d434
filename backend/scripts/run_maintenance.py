#!/usr/bin/env python
"""
Scheduled Maintenance Runner

Runs the expiration sweeps once, for cron-style schedulers.
Run from backend directory: python scripts/run_maintenance.py

Options:
    --registrations   Only expire lapsed registrations
    --sanctions       Only clear expired suspensions
    --json            Print the result as JSON

Exit status is 1 when any sweep failed.
"""

import sys
import os
import argparse
import json

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from campus_parking.config import ConfigManager
from campus_parking.database import StoreError
from campus_parking.logging_config import configure_structlog
from campus_parking.bootstrap import build_store
from campus_parking.sanctions import (
    ExpirationSweeper,
    SanctionError,
    run_maintenance_jobs,
)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Run sanction and registration expiration sweeps')
    parser.add_argument('--registrations', action='store_true', help='Only run the registration sweep')
    parser.add_argument('--sanctions', action='store_true', help='Only run the sanction sweep')
    parser.add_argument('--json', action='store_true', help='Print result as JSON')
    parser.add_argument('--config-dir', default=None, help='Configuration directory')
    args = parser.parse_args(argv)

    config = ConfigManager(args.config_dir)
    log_config = config.get_logging_config()
    configure_structlog(log_config.get('environment', 'development'), log_config.get('level'))

    store = build_store(config)
    store.init_schema()
    sweeper = ExpirationSweeper(store, batch_size=config.get('maintenance.batchSize', 450))

    if args.registrations == args.sanctions:
        result = run_maintenance_jobs(sweeper)
        payload = result.to_dict()
        ok = result.success
    else:
        sweep = sweeper.sweep_registrations if args.registrations else sweeper.sweep_sanctions
        try:
            payload = {"success": True, **sweep().to_dict()}
            ok = True
        except (SanctionError, StoreError) as exc:
            payload = {"success": False, "details": str(exc)}
            ok = False

    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        print("=" * 60)
        print("MAINTENANCE RUN " + ("COMPLETED" if ok else "FAILED"))
        print("=" * 60)
        for name in ("registrations", "sanctions"):
            section = payload.get(name)
            if section:
                print(f"{name}: {section['processedCount']}/{section['foundCount']} processed")
        if payload.get('sweep'):
            print(f"{payload['sweep']}: {payload['processedCount']}/{payload['foundCount']} processed")
        for name, reason in payload.get('errors', {}).items():
            print(f"[ERROR] {name}: {reason}")
        if not ok and payload.get('details'):
            print(f"[ERROR] {payload['details']}")

    return 0 if ok else 1


if __name__ == '__main__':
    sys.exit(main())
