#!/usr/bin/env python3
"""
Migrate Helm charts from Harbor's ChartMuseum to Harbor's OCI registry.

Harbor 2.8 removed ChartMuseum. This tool copies every chart version stored
there into the OCI registry of the same Harbor, project by project, using
helm push. The ChartMuseum copy is left untouched.

Usage examples:
  # Migrate every project
  chartmuseum2oci --url https://harbor.example.com --username admin --password secret

  # Migrate two projects only, under a sub-path
  chartmuseum2oci --url https://harbor.example.com --username admin --password secret \\
    --project team-a --project team-b --destpath /charts

  # List what would be migrated
  chartmuseum2oci --url https://harbor.example.com --username admin --password secret --dry-run
"""

import argparse
import sys
from datetime import datetime
from typing import List, Optional

from chartmigrate import BUILD_DATE, COMMIT, __version__
from chartmigrate.config_manager import ConfigManager
from chartmigrate.error_utils import ActionableError
from chartmigrate.logging_utils import get_logger, setup_logging
from chartmigrate.migrator import ChartMigrator
from chartmigrate.report_utils import build_migration_report, save_json

logger = get_logger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chartmuseum2oci",
        description="Migrate Helm charts from Harbor ChartMuseum to Harbor OCI registry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables:
  HARBOR_URL, HARBOR_USERNAME, HARBOR_PASSWORD, HARBOR_DEST_PATH, HELM_BINARY, CONFIG_FILE
Command-line flags win over environment variables, which win over config.yaml.
        """,
    )

    parser.add_argument("--url", help="Harbor registry url")
    parser.add_argument("--username", help="Harbor registry username")
    parser.add_argument("--password", help="Harbor registry password")
    parser.add_argument("--destpath", help="Destination subpath")
    parser.add_argument(
        "--project",
        action="append",
        dest="projects",
        help="Name of the project(s) to migrate (repeatable, default: all projects)",
    )
    parser.add_argument(
        "--dest-project",
        help="Push every chart into this project instead of the project it came from",
    )
    parser.add_argument("--insecure", action="store_true", help="Skip TLS verification for helm operations")
    parser.add_argument("--plain-http", action="store_true", help="Use plain HTTP for helm operations")
    parser.add_argument("--config", help="Path to config.yaml (default: CONFIG_FILE or ./config.yaml)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the charts that would be migrated without pushing anything",
    )
    parser.add_argument("--output", help="Output file for migration report (default: reports/migration-report.json)")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING"],
        help="Logging level (default: INFO); the run summary is printed at every level",
    )
    parser.add_argument("--version", action="store_true", help="Show version information")

    return parser.parse_args(argv)


def print_version() -> None:
    print(f"chartmuseum2oci version {__version__}")
    print(f"commit: {COMMIT}")
    print(f"build date: {BUILD_DATE}")


def build_config_manager(args: argparse.Namespace) -> ConfigManager:
    cm = ConfigManager(config_file=args.config, validate=False)
    cm.apply_overrides(
        {
            "harbor": {"url": args.url, "username": args.username, "password": args.password},
            "migration": {
                "dest_path": args.destpath,
                "dest_project": args.dest_project,
                "projects": args.projects or None,
            },
            # store_true flags only override when given
            "helm": {"insecure": args.insecure or None, "plain_http": args.plain_http or None},
        }
    )
    return cm


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_arguments(argv)

    if args.version:
        print_version()
        sys.exit(0)

    setup_logging(args.log_level)

    try:
        config = build_config_manager(args).to_run_config(dry_run=args.dry_run, output_file=args.output)

        logger.info("=" * 60)
        if config.dry_run:
            logger.info("   CHART MIGRATION - DRY RUN MODE")
            logger.info("   No charts will be pushed.")
        else:
            logger.info("   CHART MIGRATION")
        logger.info("=" * 60)
        logger.info(f"Harbor:              {config.harbor_url}")
        logger.info(f"Destination:         oci://{config.harbor_host}/{config.dest_project or '<project>'}{config.dest_path}")
        logger.info(f"Projects:            {', '.join(config.projects) or 'all'}")

        started_at = datetime.now()
        report = ChartMigrator(config, show_progress=not args.no_progress).run()

        try:
            save_json(config.output_file, build_migration_report(report, config, started_at))
        except OSError as e:
            logger.warning(f"Could not write migration report to {config.output_file}: {e}")

    except KeyboardInterrupt:
        logger.warning("\nMigration interrupted by user")
        sys.exit(130)
    except ActionableError as e:
        logger.error(f"\nMigration failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
