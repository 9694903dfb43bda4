"""
Validate command implementation.

Loads the configuration, runs the validation step and prints the resolved
settings.
"""

import logging

from gotoolchain.cli.utils import load_settings_from_args
from gotoolchain.tasks.validate import Validate

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the validate command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    settings = load_settings_from_args(args)
    Validate(settings).run()

    build = settings.build
    toolchain = settings.toolchain
    print("Configuration is valid")
    print(f"  Package:          {build.package_name}")
    print(f"  Platforms:        {', '.join(str(p) for p in build.platforms)}")
    print(f"  Host:             {build.host_platform}")
    print(f"  Go version:       {toolchain.go_version}")
    print(f"  GOROOT:           {toolchain.toolchain_root}")
    print(f"  GOROOT_BOOTSTRAP: {toolchain.bootstrap_root}")
    print(f"  CGO_ENABLED:      {'1' if toolchain.native_interop_enabled else '0'}")
    if build.workspace is not None:
        print(f"  Workspace:        {build.workspace}")
    return 0
