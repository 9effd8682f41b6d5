"""Maintenance scheduler: retry verifications that did not finish inline.

Pending versions are drained one at a time so side effects such as the
automatic default assignment stay strictly ordered.
"""

import argparse
import time
import warnings
from collections.abc import Callable

from .config import Settings
from .server.registry import BatchSummary, SkillRegistry


def run_scheduler(
    registry: SkillRegistry,
    limit: int,
    interval_seconds: float,
    iterations: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
    on_summary: Callable[[BatchSummary], None] | None = None,
) -> list[BatchSummary]:
    """Run pending-verification batches on a fixed interval.

    Args:
        registry: The registry to maintain.
        limit: Maximum versions per batch.
        interval_seconds: Pause between batches.
        iterations: Stop after this many batches (None runs forever).
        sleep: Injected for tests.
        on_summary: Called with each batch summary.

    Returns:
        The summaries of all batches run.
    """
    summaries: list[BatchSummary] = []
    count = 0
    while iterations is None or count < iterations:
        if count:
            sleep(interval_seconds)
        try:
            summary = registry.run_pending_verifications(limit)
        except OSError as e:
            warnings.warn(f"Verification batch failed: {e}", stacklevel=2)
            summary = BatchSummary()
        summaries.append(summary)
        if on_summary:
            on_summary(summary)
        count += 1
    return summaries


def _print_summary(summary: BatchSummary) -> None:
    print("Verification batch completed:")
    print(f"  Scanned:   {summary.scanned}")
    print(f"  Processed: {summary.processed}")
    print(f"  Verified:  {summary.verified}")
    print(f"  Rejected:  {summary.rejected}")


def main() -> None:
    """CLI entry point for the verification scheduler."""
    settings = Settings()
    parser = argparse.ArgumentParser(description="Verify pending hosted skill versions")
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.verification_batch_limit,
        help=f"Versions per batch (max {settings.verification_batch_limit})",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.verification_interval_seconds,
        help="Seconds between batches",
    )
    parser.add_argument("--once", action="store_true", help="Run a single batch and exit")
    args = parser.parse_args()

    registry = SkillRegistry.from_settings(settings)
    run_scheduler(
        registry,
        limit=args.limit,
        interval_seconds=args.interval,
        iterations=1 if args.once else None,
        on_summary=_print_summary,
    )


if __name__ == "__main__":
    main()
