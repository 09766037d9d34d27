"""Command line interface for the webform CiviCRM migration."""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigurationError, MigrateError
from .extractors.legacy_database import LegacyDatabase
from .extractors.row_file import RowFileExtractor
from .loaders.memory_store import MemoryWebformStore
from .models.migration import MigrationConfig, MigrationStatus
from .orchestrator import MigrationOrchestrator
from .services.handler_installer import derive_contact_settings, migrate_civicrm_data

logger = logging.getLogger(__name__)


def load_config(path: str) -> MigrationConfig:
    """
    Load a migration config from a YAML file.

    Raises:
        ConfigurationError: If the file is missing or not a mapping
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return MigrationConfig.from_dict(data)


def _config_from_args(args) -> MigrationConfig:
    if getattr(args, "config", None):
        config = load_config(args.config)
    else:
        config = MigrationConfig.from_dict({"name": "cli"})

    if getattr(args, "database_url", None):
        config.legacy_database_url = args.database_url
    if getattr(args, "table_prefix", None):
        config.table_prefix = args.table_prefix
    if getattr(args, "dry_run", False):
        config.dry_run = True
    return config


def _legacy_from_config(config: MigrationConfig) -> LegacyDatabase:
    if not config.legacy_database_url:
        raise ConfigurationError("A legacy database URL is required (--database-url or LEGACY_DATABASE_URL)")
    return LegacyDatabase(config.legacy_database_url, table_prefix=config.table_prefix)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Migrate Drupal 7 webform_civicrm webforms to Drupal 9+",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run migration
    run_parser = subparsers.add_parser("run", help="Run the webform migration")
    run_parser.add_argument("--config", required=True, help="Path to migration config YAML")
    run_parser.add_argument("--dry-run", action="store_true", help="Keep results in memory only")

    # Preview rows
    preview_parser = subparsers.add_parser("preview", help="Preview migrated elements of source rows")
    preview_parser.add_argument("--input", required=True, help="Path to rows file (YAML or JSON)")
    preview_parser.add_argument("--config", help="Path to migration config YAML")
    preview_parser.add_argument("--database-url", help="SQLAlchemy URL of the legacy database")
    preview_parser.add_argument("--table-prefix", help="Table prefix of the legacy database")
    preview_parser.add_argument("--nid", type=int, help="Only preview this nid")

    # Handler settings
    settings_parser = subparsers.add_parser("settings", help="Show derived webform_civicrm handler settings")
    settings_parser.add_argument("--config", help="Path to migration config YAML")
    settings_parser.add_argument("--database-url", help="SQLAlchemy URL of the legacy database")
    settings_parser.add_argument("--table-prefix", help="Table prefix of the legacy database")
    settings_parser.add_argument("--nid", type=int, help="Only show this nid")

    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        if args.command == "run":
            return run_migration(args)
        elif args.command == "preview":
            return run_preview(args)
        elif args.command == "settings":
            return run_settings(args)
        parser.print_help()
        return 1
    except MigrateError as e:
        logger.error(str(e))
        return 2


def run_migration(args) -> int:
    """Run a migration from config file."""
    config = _config_from_args(args)
    orchestrator = MigrationOrchestrator(config)
    result = orchestrator.run_migration()

    print("\n" + "=" * 60)
    print("MIGRATION COMPLETE")
    print("=" * 60)
    print(f"Status: {result.status.value}")
    print(f"Rows Processed: {result.rows_processed}")
    print(f"Imported: {result.rows_imported}")
    print(f"Skipped: {result.rows_skipped}")
    print(f"Failed: {result.rows_failed}")
    if result.duration_seconds:
        print(f"Duration: {result.duration_seconds:.2f} seconds")

    return 0 if result.status == MigrationStatus.COMPLETED else 1


def run_preview(args) -> int:
    """Preview the migrated elements of rows from a file."""
    config = _config_from_args(args)
    extractor = RowFileExtractor(file_path=args.input)
    rows = extractor.extract().rows
    if args.nid is not None:
        rows = [r for r in rows if str(r.get("nid")) == str(args.nid)]

    orchestrator = MigrationOrchestrator(
        config,
        legacy=_legacy_from_config(config),
        extractor=extractor,
        store=MemoryWebformStore(),
    )

    output: List[Dict[str, Any]] = []
    for row in orchestrator.preview_rows(rows):
        item = {"nid": row.get("nid"), "elements": row.get("elements")}
        if row.get("@skip_reason"):
            item["skipped"] = row.get("@skip_reason")
        output.append(item)

    print(yaml.safe_dump(output, default_flow_style=False, sort_keys=False, allow_unicode=True))
    return 0


def run_settings(args) -> int:
    """Show the handler settings derived from the legacy forms."""
    config = _config_from_args(args)
    legacy = _legacy_from_config(config)
    nids = [args.nid] if args.nid is not None else legacy.list_form_nids()

    output: Dict[int, Any] = {}
    for nid in nids:
        record = legacy.get_form_record(nid)
        if record is None:
            print(f"No CiviCRM settings for nid {nid}", file=sys.stderr)
            continue
        settings = derive_contact_settings(record.data)
        settings.update(record.form_options())
        settings["data"] = migrate_civicrm_data(record.data)
        output[nid] = settings

    print(yaml.safe_dump(output, default_flow_style=False, sort_keys=False, allow_unicode=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
