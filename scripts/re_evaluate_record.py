"""
CLI tool to re-evaluate a stored intake record.

Usage:
    python scripts/re_evaluate_record.py <record_id>
    python scripts/re_evaluate_record.py --apply <evaluation_id> --applied-by "staff@city.gov"

Examples:
    # Propose a re-evaluation and print the diff
    python scripts/re_evaluate_record.py 7d1c9a40-...

    # Apply a stored candidate evaluation to its record
    python scripts/re_evaluate_record.py --apply 0b6f2e11-... --applied-by admin
"""

import argparse
import asyncio
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv
load_dotenv(".env.local")

from intake_engine.db import get_db
from intake_engine.logging_config import setup_logging, get_logger
from intake_engine.services.re_evaluation import apply_re_evaluation, propose_re_evaluation

setup_logging()
logger = get_logger(__name__)


async def propose(record_id: str) -> None:
    """Re-evaluate one record and print what would change."""
    proposal = await propose_re_evaluation(record_id, get_db())
    if proposal is None:
        print(f"Could not re-evaluate {record_id}. Check logs for details.")
        return

    if not proposal.diff.has_changes:
        print("No changes proposed.")
    for field in proposal.diff.changed_fields:
        entry = getattr(proposal.diff, field)
        print(f"{field}: {entry.current!r} -> {entry.candidate!r}")

    if proposal.evaluation is not None:
        print(f"Candidate evaluation stored: {proposal.evaluation.id}")
        print(f"Apply with: --apply {proposal.evaluation.id}")


async def apply(evaluation_id: str, applied_by: str) -> None:
    result = await apply_re_evaluation(evaluation_id, get_db(), applied_by)
    if result is None:
        print("Apply failed. Check logs for details.")
    else:
        print(f"Applied evaluation {evaluation_id}: {result}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Re-evaluate a stored intake record")
    parser.add_argument("record_id", nargs="?", help="Record UUID to re-evaluate")
    parser.add_argument("--apply", metavar="EVALUATION_ID", help="Apply a stored candidate evaluation")
    parser.add_argument("--applied-by", default="cli", help="Who is applying the evaluation")

    args = parser.parse_args()

    if not args.record_id and not args.apply:
        parser.error("Provide either record_id or --apply")

    if args.apply:
        asyncio.run(apply(args.apply, args.applied_by))
    else:
        asyncio.run(propose(args.record_id))


if __name__ == "__main__":
    main()
