"""Command-line entry point for the inup resolver."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List, Optional, Sequence, Tuple

from inup import __version__
from inup.common.logging_utils import configure_logging
from inup.common.patterns import is_package_ignored
from inup.config import RegistryConfig
from inup.constants import Constants, ExitCodes, apply_env_overrides, apply_yaml_overrides
from inup.service import RegistryService
from inup.versioning.semver import is_version_outdated

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="inup",
        description="Look up the latest versions of npm packages (jsDelivr first, npm registry fallback)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Also write log records to this file",
                        type=str)
    parser.add_argument("--cache-dir",
                        dest="CACHE_DIR",
                        help="Override the disk cache directory",
                        type=str)

    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="Resolve latest versions for packages")
    resolve.add_argument("packages",
                         nargs="+",
                         metavar="NAME[@CURRENT]",
                         help="Package name, optionally with the installed version")
    resolve.add_argument("-r", "--registry",
                         dest="REGISTRY",
                         choices=Constants.SUPPORTED_REGISTRIES,
                         help="Primary registry (default from config)")
    resolve.add_argument("-t", "--timeout",
                         dest="TIMEOUT",
                         type=float,
                         help="npm registry request timeout in seconds")
    resolve.add_argument("-i", "--ignore",
                         dest="IGNORE",
                         action="append",
                         default=[],
                         help="Skip packages matching this glob (repeatable)")
    resolve.add_argument("--json",
                         dest="JSON",
                         action="store_true",
                         help="Print results as JSON")
    resolve.add_argument("--no-cache",
                         dest="NO_CACHE",
                         action="store_true",
                         help="Clear the disk cache before resolving")

    cache = sub.add_parser("cache", help="Inspect or clear the disk cache")
    cache.add_argument("action", choices=["stats", "clear"])

    return parser.parse_args(argv)


def split_spec(spec: str) -> Tuple[str, Optional[str]]:
    """Split ``name@version`` (scoped names keep their leading ``@``)."""
    at = spec.rfind("@")
    if at <= 0:
        return spec, None
    return spec[:at], spec[at + 1:] or None


def _setup_logging(args: argparse.Namespace) -> None:
    configure_logging(getattr(args, "LOG_LEVEL", None))
    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def _render_table(rows: List[Dict[str, object]]) -> str:
    headers = ["package", "current", "latest", "outdated"]
    cells = [[str(row[h]) if row[h] is not None else "-" for h in headers] for row in rows]
    widths = [max([len(h)] + [len(c[i]) for c in cells]) for i, h in enumerate(headers)]
    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths))]
    lines.extend("  ".join(c.ljust(w) for c, w in zip(cell, widths)) for cell in cells)
    return "\n".join(lines)


async def _run_resolve(args: argparse.Namespace, config: RegistryConfig) -> int:
    specs = [split_spec(spec) for spec in args.packages]
    specs = [(name, current) for name, current in specs if not is_package_ignored(name, args.IGNORE)]
    if not specs:
        logger.warning("Every package was ignored; nothing to resolve")
        return ExitCodes.SUCCESS.value

    names = [name for name, _ in specs]
    current_versions = {name: current for name, current in specs if current}

    def _progress(name: str, completed: int, total: int) -> None:
        if sys.stderr.isatty():
            sys.stderr.write(f"\rChecking {completed}/{total}: {name}".ljust(60))
            sys.stderr.flush()

    async with RegistryService(config) as service:
        if args.NO_CACHE:
            service.clear_disk_cache()
        results = await service.get_all_package_data(names, current_versions, on_progress=_progress)
    if sys.stderr.isatty():
        sys.stderr.write("\r" + " " * 60 + "\r")

    rows = []
    for name, current in specs:
        data = results[name]
        rows.append({
            "package": name,
            "current": current,
            "latest": data.latest_version,
            "outdated": bool(current) and is_version_outdated(current, data.latest_version),
            "versions": list(data.all_versions),
        })

    if args.JSON:
        print(json.dumps(rows, indent=2))
    else:
        print(_render_table(rows))
    return ExitCodes.SUCCESS.value


def _run_cache(args: argparse.Namespace, config: RegistryConfig) -> int:
    service = RegistryService(config)
    if args.action == "clear":
        service.clear_disk_cache()
        print(f"Cleared {service.persistent_cache.cache_dir}")
    else:
        stats = service.cache_stats()["disk"]
        print(f"entries: {stats['entries']}")
        print(f"location: {stats['storage_location']}")
    return ExitCodes.SUCCESS.value


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main function of the program."""
    args = parse_args(argv)
    apply_yaml_overrides()
    apply_env_overrides()
    _setup_logging(args)

    try:
        config = RegistryConfig.from_args(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(ExitCodes.USAGE_ERROR.value)

    if args.command == "cache":
        sys.exit(_run_cache(args, config))

    sys.exit(asyncio.run(_run_resolve(args, config)))
