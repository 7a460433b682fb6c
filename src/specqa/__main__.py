"""Command-line entry point.

Usage:
    python -m specqa                    # every completed specification
    python -m specqa password-toggle    # one specification
    python -m specqa --check            # validate directories, list specs

Exit codes: 0 when every check passed, 1 when a check failed or the system
is not valid, 2 when the run could not start.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from specqa.config import QAConfig
from specqa.exceptions import QAError
from specqa.logging_config import configure_logging
from specqa.qa import QAPipeline

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="specqa",
        description="Run acceptance-criteria browser checks for completed specifications",
    )
    parser.add_argument("spec", nargs="?", help="Specification to test (default: all completed)")
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate directories and list completed specifications, then exit",
    )
    args = parser.parse_args(argv)

    configure_logging()

    try:
        base = QAConfig.from_yaml(args.config) if args.config else None
        pipeline = QAPipeline.from_config(QAConfig.from_env(base))

        if args.check:
            status = pipeline.validate_system()
            logger.info("Completed specifications: %s", ", ".join(pipeline.get_specs_status()) or "none")
            return 0 if status["valid"] else 1

        result = asyncio.run(pipeline.run(args.spec))
    except QAError as e:
        logger.error("QA run failed at %s: %s", e.stage, e)
        return 2

    logger.info("Report written to %s", result.report_path)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
