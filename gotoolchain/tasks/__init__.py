"""
Pipeline steps of gotoolchain.

Hosts run Validate and then PrepareToolchain, in that order; run_pipeline
does both.
"""

from gotoolchain.tasks.pipeline import run_pipeline
from gotoolchain.tasks.prepare_toolchain import (
    BUILD_FAIL_KEYWORDS,
    TOOLS,
    PhaseResult,
    PrepareResult,
    PrepareToolchain,
    TaskOutcome,
)
from gotoolchain.tasks.validate import Validate

__all__ = [
    "run_pipeline",
    "BUILD_FAIL_KEYWORDS",
    "TOOLS",
    "PhaseResult",
    "PrepareResult",
    "PrepareToolchain",
    "TaskOutcome",
    "Validate",
]
