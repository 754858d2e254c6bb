"""
Command-line entry point.

  python -m claimscore.cli ingest data/claims.csv [--replace]
  python -m claimscore.cli reset
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from claimscore.config import settings
from claimscore.database import async_session, create_schema, engine
from claimscore.middleware.logging_config import configure_logging
from claimscore.services.claim_repository import ClaimRepository
from claimscore.services.ingestion import IngestionError, IngestionPipeline
from claimscore.upload.csv_reader import CsvValidationError

logger = logging.getLogger("claimscore.cli")


async def ingest_file(csv_path: Path, replace: bool = False) -> int:
    """Load a CSV through the ingestion pipeline. Returns a process exit code."""
    if not csv_path.exists():
        logger.error("CSV not found at %s", csv_path)
        return 1

    await create_schema()
    content = csv_path.read_bytes()

    async with async_session() as db:
        if replace:
            # Committed together with the ingestion run, so a failed load keeps the old data
            await ClaimRepository(db).reset()
        try:
            result = await IngestionPipeline(db).ingest_csv(content)
        except CsvValidationError as exc:
            logger.error("Rejected %s: %s", csv_path, exc)
            return 2
        except IngestionError as exc:
            logger.error("%s", exc)
            return 1

    print(
        f"Ingested {csv_path}: {result.inserted} inserted, {result.skipped} skipped, "
        f"{result.total_claims} total claims, {result.high_risk} high risk"
    )
    return 0


async def reset() -> int:
    await create_schema()
    async with async_session() as db:
        await ClaimRepository(db).reset()
        await db.commit()
    print("All tables truncated")
    return 0


async def _run(args: argparse.Namespace) -> int:
    try:
        if args.command == "ingest":
            return await ingest_file(Path(args.csv_path), replace=args.replace)
        return await reset()
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="claimscore", description="Claim ingestion and fraud scoring"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ing = subparsers.add_parser("ingest", help="Ingest a claims CSV and re-score all claims")
    ing.add_argument("csv_path", help="Path to the claims CSV")
    ing.add_argument("--replace", action="store_true", help="Delete existing data first")

    subparsers.add_parser("reset", help="Delete all claims and derived stats")

    args = parser.parse_args(argv)
    configure_logging(settings.log_level, settings.log_format)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
