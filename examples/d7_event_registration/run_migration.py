#!/usr/bin/env python3
"""
Example: Drupal 7 event registration webforms to Drupal 9 webform_civicrm

This script shows how to use webform_civicrm_migrate to migrate exported
webform rows and install the webform_civicrm handler on the result.

Usage:
    # Build a sample legacy database, then migrate into memory only
    python run_migration.py --demo --dry-run

    # Full migration into config/sync
    python run_migration.py --demo

    # With custom config
    python run_migration.py --config my_config.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

import phpserialize
from sqlalchemy import create_engine, text

from webform_civicrm_migrate.cli import load_config
from webform_civicrm_migrate.models.migration import MigrationConfig
from webform_civicrm_migrate.orchestrator import MigrationOrchestrator

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

EXAMPLE_DIR = Path(__file__).parent

# Legacy settings of nid 12: an individual attendee and their employer
EVENT_FORM_DATA = {
    "contact": {
        1: {"contact": {1: {
            "contact_type": "individual",
            "contact_sub_type": {"Attendee": "Attendee"},
            "webform_label": "Attendee",
        }}},
        2: {"contact": {1: {
            "contact_type": "organization",
            "webform_label": "Employer",
        }}},
    },
    "participant_reg_type": "separate",
    "reg_options": {"validate": 1},
}

EVENT_COMPONENTS = [
    ("civicrm_1_contact_1_fieldset_fieldset", "fieldset", {}),
    ("civicrm_1_contact_1_contact_existing", "civicrm_contact", {
        "widget": "hidden",
        "default": "user",
        "attributes": {"results_display": "display_name"},
    }),
    ("civicrm_1_contact_1_contact_first_name", "textfield", {}),
    ("civicrm_1_contact_1_contact_last_name", "textfield", {}),
    ("civicrm_2_contact_1_fieldset_fieldset", "fieldset", {}),
    ("civicrm_2_contact_1_contact_existing", "civicrm_contact", {
        "widget": "autocomplete",
        "allow_create": 1,
    }),
    ("dietary_requirements", "textarea", {}),
]


def build_demo_database(database_url: str) -> None:
    """Create a legacy database holding the event registration webform."""
    engine = create_engine(database_url)
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS webform_civicrm_forms"))
        conn.execute(text("DROP TABLE IF EXISTS webform_component"))
        conn.execute(text(
            "CREATE TABLE webform_civicrm_forms (nid INTEGER NOT NULL, data TEXT, "
            "prefix_known TEXT, prefix_unknown TEXT, message TEXT, confirm_subscription INTEGER, "
            "block_unknown_users INTEGER, create_new_relationship INTEGER, create_fieldsets INTEGER, "
            "new_contact_source TEXT)"
        ))
        conn.execute(text(
            "CREATE TABLE webform_component (nid INTEGER NOT NULL, cid INTEGER, pid INTEGER, "
            "form_key TEXT, type TEXT, extra TEXT)"
        ))
        conn.execute(
            text(
                "INSERT INTO webform_civicrm_forms VALUES (:nid, :data, :prefix_known, '', :message, "
                "1, 0, 0, 1, 'Event registration')"
            ),
            {
                "nid": 12,
                "data": phpserialize.dumps(EVENT_FORM_DATA).decode("utf-8"),
                "prefix_known": "Welcome back, [display name]",
                "message": "You are viewing this form as [display name].",
            },
        )
        for cid, (form_key, component_type, extra) in enumerate(EVENT_COMPONENTS, start=1):
            conn.execute(
                text("INSERT INTO webform_component VALUES (12, :cid, 0, :form_key, :type, :extra)"),
                {
                    "cid": cid,
                    "form_key": form_key,
                    "type": component_type,
                    "extra": phpserialize.dumps(extra).decode("utf-8"),
                },
            )
    engine.dispose()
    logger.info(f"Built demo legacy database at {database_url}")


def run_migration(config: MigrationConfig):
    """Run the migration."""
    logger.info("=" * 60)
    logger.info("STARTING MIGRATION")
    logger.info("=" * 60)
    logger.info(f"Name: {config.name}")
    logger.info(f"Dry Run: {config.dry_run}")
    logger.info(f"Destination: {config.destination_dir}")

    orchestrator = MigrationOrchestrator(config)
    result = orchestrator.run_migration()

    logger.info("=" * 60)
    logger.info("MIGRATION COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Status: {result.status.value}")
    logger.info(f"Total Processed: {result.rows_processed}")
    logger.info(f"Succeeded: {result.rows_imported}")
    logger.info(f"Failed: {result.rows_failed}")
    logger.info(f"Skipped: {result.rows_skipped}")
    logger.info(f"CiviCRM handlers installed: {', '.join(orchestrator.subscriber.installed_handlers) or 'none'}")

    if result.duration_seconds:
        logger.info(f"Duration: {result.duration_seconds:.2f} seconds")

    if result.errors:
        logger.warning(f"Errors ({len(result.errors)}):")
        for error in result.errors[:10]:
            logger.warning(f"  - {error}")

    return result


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Drupal 7 event registration webforms to Drupal 9 webform_civicrm"
    )
    parser.add_argument(
        "--config",
        default=str(EXAMPLE_DIR / "migration.yml"),
        help="Path to YAML config file"
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Build the sample legacy database first"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Keep migrated webforms in memory"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = load_config(args.config)
    if args.dry_run:
        config.dry_run = True

    if args.demo:
        build_demo_database(config.legacy_database_url)

    result = run_migration(config)
    sys.exit(0 if result.status.value == "completed" else 1)


if __name__ == "__main__":
    main()
