"""
gotoolchain - Go toolchain provisioning for build pipelines.

Acquires a bootstrap compiler, downloads Go sources of a pinned version,
builds the toolchain for the host and every configured target platform and
compiles the small helper tools later build phases depend on.

Usage:
    from gotoolchain.config import load_settings
    from gotoolchain.tasks import run_pipeline

    settings = load_settings(Path("."))
    result = run_pipeline(settings)
    print(result.outcome)
"""

__version__ = "0.3.0"

# Group part of the helper tool cache key (<tool>:<group>:<version>).
TOOL_GROUP = "gotoolchain"

__all__ = ["__version__", "TOOL_GROUP"]
