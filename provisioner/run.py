from __future__ import annotations

import argparse
import sys

import structlog

from .catalog import CatalogError, TargetCatalog
from .config import ProvisionSettings
from .dispatcher import ALL_TARGETS, Dispatcher, UnknownTargetError
from .log import configure_logging
from .macros import UnresolvedMacroError
from .utils import ProvisionError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_UNRESOLVED_MACRO = 3

logger = structlog.get_logger(__name__)


def _load_catalog(args: argparse.Namespace) -> TargetCatalog:
    if args.targets:
        return TargetCatalog.from_file(args.targets)
    return TargetCatalog.default()


def cmd_list(args: argparse.Namespace) -> int:
    catalog = _load_catalog(args)
    for spec in catalog.iter_targets():
        print(spec.name)
    return EXIT_OK


def cmd_provision(args: argparse.Namespace, settings: ProvisionSettings) -> int:
    if settings.skip_provisioning:
        logger.info("skipping provisioning in push mode")
        return EXIT_OK

    dispatcher = Dispatcher(settings, _load_catalog(args), lenient=args.lenient)
    executed = dispatcher.run(args.target)
    for failure in dispatcher.failures:
        logger.warning(
            "variant skipped",
            family=failure.variant.family,
            variant=failure.variant.name,
            error=str(failure.error),
        )
    logger.info("provisioning finished", targets=executed, failures=len(dispatcher.failures))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="provision",
        description="Deploy configuration, baselayout and Dockerfile macros into image variants",
    )
    parser.add_argument(
        "target",
        nargs="?",
        default=ALL_TARGETS,
        help="Build target to provision (default: all).",
    )
    parser.add_argument(
        "--base-dir",
        default=None,
        help="Directory holding docker/, provisioning/ and baselayout/ (default: $PROVISION_BASE_DIR or cwd).",
    )
    parser.add_argument(
        "--targets",
        default=None,
        help="JSON or YAML target table to use instead of the built-in one.",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Log configuration copy failures and continue with the remaining variants.",
    )
    parser.add_argument("--list", action="store_true", help="List the available targets and exit.")
    parser.add_argument("--log-format", choices=("console", "json"), default=None)
    parser.add_argument("--log-level", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = ProvisionSettings.from_env(base_dir=args.base_dir)
    if args.log_format:
        settings.log_format = args.log_format
    if args.log_level:
        settings.log_level = args.log_level
    configure_logging(settings.log_level, settings.log_format)

    try:
        if args.list:
            return cmd_list(args)
        return cmd_provision(args, settings)
    except UnresolvedMacroError as exc:
        logger.error(
            "unresolved Dockerfile macro",
            marker=exc.marker,
            expected_path=str(exc.expected_path),
            **exc.context,
        )
        return EXIT_UNRESOLVED_MACRO
    except (UnknownTargetError, CatalogError) as exc:
        logger.error("invalid target", error=str(exc))
        return EXIT_USAGE
    except ProvisionError as exc:
        logger.error("provisioning failed", error=str(exc), **exc.context)
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
