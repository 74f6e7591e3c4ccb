"""Payroll submissions command line interface.

Provides operational tools for:
- Pay period lookup
- Resuming postings interrupted after approval
- Schema creation

Usage:
    payroll-submissions period 2025-01-17
    payroll-submissions period --json
    payroll-submissions resume-postings
    payroll-submissions init-db
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date
from typing import Callable

from payroll_submissions.calculators.period import PeriodCalculator
from payroll_submissions.config import configure_logging, get_settings
from payroll_submissions.database import dispose_db, get_session, init_db
from payroll_submissions.services.approval_poster import ApprovalPoster, PostingResult


class SubmissionsCli:
    """Payroll submissions command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="payroll-submissions",
            description="Payroll submission operational tools",
        )
        parser.add_argument(
            "--log-level",
            type=str.upper,
            help="Override LOG_LEVEL",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # period command
        period = subparsers.add_parser(
            "period",
            help="Show payroll group and work period for a pay date",
        )
        period.add_argument(
            "pay_date",
            nargs="?",
            help="Pay date as YYYY-MM-DD (default: next Friday)",
        )
        period.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

        # resume-postings command
        subparsers.add_parser(
            "resume-postings",
            help="Finish posting every submission left in approved",
        )

        # init-db command
        subparsers.add_parser(
            "init-db",
            help="Create missing tables",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level)

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "period": self._cmd_period,
            "resume-postings": self._cmd_resume_postings,
            "init-db": self._cmd_init_db,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_period(self, args: argparse.Namespace) -> int:
        """Print the payroll group and period bounds."""
        calculator = PeriodCalculator.from_settings()
        if args.pay_date is None:
            period = calculator.calculate(PeriodCalculator.next_pay_date(date.today()))
        else:
            period = calculator.calculate_from_string(args.pay_date)
        if not period.is_valid:
            print(f"Invalid pay date: {args.pay_date}", file=sys.stderr)
            return 2

        if args.json:
            print(
                json.dumps(
                    {
                        "pay_date": period.pay_date.isoformat(),
                        "payroll_group": period.payroll_group.value,
                        "period_start": period.period_start.isoformat(),
                        "period_end": period.period_end.isoformat(),
                    },
                    indent=2,
                )
            )
        else:
            print(f"Pay date:      {period.pay_date.isoformat()}")
            print(f"Payroll group: {period.payroll_group.value}")
            print(f"Period:        {period.period_start.isoformat()} to {period.period_end.isoformat()}")
        return 0

    def _cmd_resume_postings(self, args: argparse.Namespace) -> int:
        """Re-drive approved submissions through posting."""
        results = asyncio.run(self._resume_postings())
        if not results:
            print("No stalled postings found.")
            return 0

        for result in results:
            print(
                f"  {result.submission_id} | {result.status} | "
                f"{result.payments_created} payments created"
            )
        print(f"\nResumed {len(results)} posting(s).")
        return 0

    @staticmethod
    async def _resume_postings() -> list[PostingResult]:
        try:
            async with get_session() as session:
                return await ApprovalPoster(session).resume_stalled()
        finally:
            await dispose_db()

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the schema."""

        async def create() -> None:
            try:
                await init_db()
            finally:
                await dispose_db()

        asyncio.run(create())
        print(f"Schema ready at {get_settings().database_url.split('@')[-1]}")
        return 0


def main() -> int:
    """CLI entry point."""
    cli = SubmissionsCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
