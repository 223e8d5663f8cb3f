"""
Escalation sweep entry point
Meant to be invoked by cron (or any external scheduler), e.g. hourly:

    0 * * * * expense-approvals-escalate --timeout-hours 24
"""

import argparse
import sys
from datetime import timedelta

from expense_approvals.config.database import SessionLocal
from expense_approvals.services.escalation_scheduler import escalation_scheduler
from expense_approvals.utils.logger import setup_logger

logger = setup_logger()


def run(timeout_hours=None) -> int:
    """Run one sweep in a fresh session and return the number of escalations"""
    db = SessionLocal()
    try:
        timeout = timedelta(hours=timeout_hours) if timeout_hours else None
        return escalation_scheduler.run_escalation_sweep(db, timeout=timeout)
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Escalate approval requests pending past the timeout")
    parser.add_argument(
        "--timeout-hours",
        type=float,
        default=None,
        help="Age in hours after which a pending request escalates (default: ESCALATION_TIMEOUT_HOURS)"
    )
    args = parser.parse_args(argv)

    try:
        count = run(args.timeout_hours)
    except Exception:
        logger.exception("Escalation sweep failed")
        return 1

    print(f"Escalated {count} approval request(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
