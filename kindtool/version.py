"""The kind CLI version and the command that prints it."""

from __future__ import annotations

import argparse
import platform
import sys

__all__ = ["version", "display_version", "truncate", "main"]

# Core portion of the version, per Semantic Versioning 2.0.0.
VERSION_CORE = "0.17.0"
# Base pre-release portion of the version.
VERSION_PRE_RELEASE = "alpha"
# Count of commits since the last release; filled in at build time if known.
GIT_COMMIT_COUNT = ""
# Commit the tool was built from; filled in at build time if known.
GIT_COMMIT = ""


def truncate(s: str, max_len: int) -> str:
    """Return s cut down to at most max_len characters."""
    if len(s) < max_len:
        return s
    return s[:max_len]


def version() -> str:
    """Return the semantic version of the CLI."""
    v = VERSION_CORE
    if VERSION_PRE_RELEASE:
        v += "-" + VERSION_PRE_RELEASE
        if GIT_COMMIT_COUNT:
            v += "." + GIT_COMMIT_COUNT
        # build metadata is only added to pre-release versions
        if GIT_COMMIT:
            v += "+" + truncate(GIT_COMMIT, 14)
    return v


def display_version() -> str:
    """Return the version formatted for display, with runtime and platform."""
    return (
        f"kind v{version()} python{platform.python_version()} "
        f"{sys.platform}/{platform.machine().lower()}"
    )


def main(argv: list[str] | None = None) -> int:
    """Print the CLI version; only the semantic version when quiet."""
    parser = argparse.ArgumentParser(prog="kind version", description="Prints the kind CLI version")
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="only print the semantic version"
    )
    args = parser.parse_args(argv)
    print(version() if args.quiet else display_version())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())