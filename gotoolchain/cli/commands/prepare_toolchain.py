"""
Prepare-toolchain command implementation.

Runs validation and toolchain provisioning and prints whether any work was
done (EXECUTED) or everything was already in place (UP-TO-DATE).
"""

import logging

from gotoolchain.cli.utils import load_settings_from_args
from gotoolchain.tasks.pipeline import run_pipeline
from gotoolchain.tasks.prepare_toolchain import TaskOutcome

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the prepare-toolchain command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    settings = load_settings_from_args(args)

    progress = None if args.quiet else logger.info
    result = run_pipeline(settings, progress_callback=progress)

    for phase in result.phases:
        logger.debug(f"  {phase.name}: {'done' if phase.did_work else 'up to date'}")

    print("EXECUTED" if result.outcome is TaskOutcome.EXECUTED else "UP-TO-DATE")
    return 0
