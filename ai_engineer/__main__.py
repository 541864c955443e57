#!/usr/bin/env python3
"""
===============================================================================
AI‑Engineer ▸ Module CLI Entrypoint
===============================================================================

Allows the package to be executed with:

    python -m ai_engineer  [args …]

`--version` is answered before anything else is imported; everything else is
handed to `ai_engineer.cli.main()` after a one‑line runtime banner.
"""
from __future__ import annotations

import argparse
import platform
import sys

from ai_engineer import get_logger, get_version

logger = get_logger(__name__)


def _parse_cli(argv: list[str]) -> tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(prog="python -m ai_engineer", add_help=False)
    parser.add_argument("--version", action="store_true")
    return parser.parse_known_args(argv)


def _print_banner() -> None:
    logger.info(
        "AI‑Engineer %s – Python %s – %s",
        get_version(),
        platform.python_version(),
        platform.platform(),
    )


def main() -> None:
    args, remaining = _parse_cli(sys.argv[1:])
    if args.version:
        print(get_version())
        sys.exit(0)

    _print_banner()

    # Lazy import keeps startup lightweight when --version used.
    from ai_engineer.cli import main as cli_main

    sys.exit(cli_main(remaining))


if __name__ == "__main__":
    main()
