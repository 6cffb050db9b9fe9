from __future__ import annotations

import argparse

from src.config.settings import settings
from src.core.logging import configure_logging
from src.core.report_service import build_report_generator, resolve_retention_days


def main() -> None:
    parser = argparse.ArgumentParser(description="Remove execution report artifacts older than a retention window")
    parser.add_argument("--days", type=int, default=None, help="days of reports to keep (0 or unset: configured default)")
    args = parser.parse_args()

    days = resolve_retention_days(args.days)
    configure_logging(settings.LOG_LEVEL)
    removed = build_report_generator().cleanup(days)
    print(f"Removed {len(removed)} report(s) older than {days} days")


if __name__ == "__main__":
    main()
