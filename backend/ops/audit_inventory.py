from __future__ import annotations

import argparse
import json
import os
import sys


def _bootstrap_app():
    from campus_market import create_app

    app = create_app()
    app.app_context().push()
    return app


def main():
    parser = argparse.ArgumentParser(description="Recompute product reservations and report any oversold listing.")
    parser.add_argument("--include-deleted", action="store_true", help="Also audit soft-deleted products.")
    parser.add_argument("--persist", action="store_true", help="Record the report as a platform event.")
    args = parser.parse_args()

    _bootstrap_app()
    from campus_market.services.reconciliation_service import audit_inventory, persist_audit

    summary = audit_inventory(include_deleted=args.include_deleted)
    if args.persist:
        event = persist_audit(summary)
        summary["event_id"] = int(event.id) if event is not None else None

    print(json.dumps(summary, indent=2))
    return 0 if int(summary.get("oversold_count") or 0) == 0 else 2


if __name__ == "__main__":
    os.environ.setdefault("FLASK_APP", "main.py")
    sys.exit(main())
