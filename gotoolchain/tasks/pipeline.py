"""The fixed validation-then-provisioning sequence."""

import logging
from typing import Callable, Mapping, Optional

from gotoolchain.config.settings import ProjectSettings
from gotoolchain.tasks.prepare_toolchain import PrepareResult, PrepareToolchain
from gotoolchain.tasks.validate import Validate

logger = logging.getLogger(__name__)


def run_pipeline(
    settings: ProjectSettings,
    environ: Optional[Mapping[str, str]] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
) -> PrepareResult:
    """
    Validate the settings, then provision the toolchain.

    Validation errors abort before any download or build starts.

    Args:
        settings: Loaded settings (completed in place by validation)
        environ: Environment consulted for GOROOT (default: os.environ)
        progress_callback: Receives short progress messages

    Returns:
        Result of the provisioning task
    """
    Validate(settings, environ=environ).run()
    return PrepareToolchain(settings, progress_callback=progress_callback).run()


__all__ = ["run_pipeline"]
