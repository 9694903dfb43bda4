"""
gotoolchain CLI argument parser.

This module implements the command-line interface for gotoolchain using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from gotoolchain import __version__
from gotoolchain.core.exceptions import GoToolchainError

logger = logging.getLogger(__name__)


class CLI:
    """gotoolchain command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="gotoolchain",
            description="gotoolchain - Go toolchain provisioning for build pipelines",
            epilog='Use "gotoolchain COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"gotoolchain {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./gotoolchain.yaml)",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=Path.cwd(),
            help="Project root directory (default: current directory)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_validate_command(subparsers)
        self._add_prepare_toolchain_command(subparsers)

        return parser

    def _add_toolchain_overrides(self, parser):
        parser.add_argument(
            "--go-version",
            metavar="VERSION",
            help="Go version to provision (e.g., 1.22.5)",
        )
        parser.add_argument(
            "--platforms",
            metavar="LIST",
            help="Comma-separated target platforms (e.g., linux-amd64,windows-amd64)",
        )
        parser.add_argument(
            "--cache-root",
            type=Path,
            metavar="DIR",
            help="Cache directory for toolchains (default: ~/.gotoolchain)",
        )

    def _add_validate_command(self, subparsers):
        """Add 'validate' subcommand."""
        parser = subparsers.add_parser(
            "validate",
            help="Validate configuration",
            description="Validate the configuration and show the resolved settings",
        )
        self._add_toolchain_overrides(parser)

    def _add_prepare_toolchain_command(self, subparsers):
        """Add 'prepare-toolchain' subcommand."""
        parser = subparsers.add_parser(
            "prepare-toolchain",
            help="Download and build the Go toolchain",
            description=(
                "Download the bootstrap toolchain and Go sources, build the toolchain "
                "for the host and all target platforms and build the helper tools"
            ),
        )
        self._add_toolchain_overrides(parser)
        parser.add_argument(
            "--force-rebuild",
            action="store_true",
            default=None,
            help="Rebuild the toolchain for all platforms even if already built",
        )
        cgo = parser.add_mutually_exclusive_group()
        cgo.add_argument(
            "--cgo",
            dest="cgo_enabled",
            action="store_true",
            default=None,
            help="Build the toolchain with CGO_ENABLED=1",
        )
        cgo.add_argument(
            "--no-cgo",
            dest="cgo_enabled",
            action="store_false",
            help="Build the toolchain with CGO_ENABLED=0",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except GoToolchainError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "validate": "gotoolchain.cli.commands.validate",
            "prepare-toolchain": "gotoolchain.cli.commands.prepare_toolchain",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
