"""Shared pytest fixtures for the webform CiviCRM migration tests.

Builds a SQLite stand-in for the legacy Drupal 7 database with the
webform_civicrm_forms and webform_component tables, storing blobs in PHP
serialize() format the way Drupal 7 does.
"""

from typing import Any, Dict, Optional

import phpserialize
import pytest
from sqlalchemy import create_engine, text

from webform_civicrm_migrate.extractors.legacy_database import LegacyDatabase


LEGACY_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS {prefix}webform_civicrm_forms (
        nid INTEGER NOT NULL,
        data TEXT,
        prefix_known TEXT,
        prefix_unknown TEXT,
        message TEXT,
        confirm_subscription INTEGER DEFAULT 1,
        block_unknown_users INTEGER DEFAULT 0,
        create_new_relationship INTEGER DEFAULT 0,
        create_fieldsets INTEGER DEFAULT 1,
        new_contact_source TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS {prefix}webform_component (
        nid INTEGER NOT NULL,
        cid INTEGER,
        pid INTEGER DEFAULT 0,
        form_key TEXT,
        type TEXT,
        extra TEXT
    )
    """,
)

# Two contact blocks; the first one has a sub-type in mixed case
FORM_DATA = {
    "contact": {
        1: {
            "contact": {
                1: {
                    "contact_type": "individual",
                    "contact_sub_type": {"Student": "Student"},
                    "webform_label": "Contact 1",
                },
            },
        },
        2: {
            "contact": {
                1: {
                    "contact_type": "organization",
                    "webform_label": "Employer",
                },
            },
        },
    },
    "activity": {},
}


# Exported elements of the nid 1 webform, as stored in a source row
ELEMENTS_YAML = """
civicrm_1_contact_1_fieldset_fieldset:
  '#type': fieldset
  '#title': Contact 1
  '#open': true
  civicrm_1_contact_1_contact_existing:
    '#type': civicrm_contact
    '#title': Existing Contact
  civicrm_1_contact_1_contact_first_name_2:
    '#type': textfield
    '#title': First Name
comments:
  '#type': textarea
"""


def php_serialize(value: Any) -> str:
    """Serialize a value the way PHP serialize() does."""
    return phpserialize.dumps(value).decode("utf-8")


class LegacyFixture:
    """Legacy database plus helpers to insert rows."""

    def __init__(self, engine, prefix: str = ""):
        self.engine = engine
        self.prefix = prefix
        self.db = LegacyDatabase(engine=engine, table_prefix=prefix)
        self._next_cid = 1

    def create_tables(self) -> None:
        with self.engine.begin() as conn:
            for statement in LEGACY_SCHEMA:
                conn.execute(text(statement.format(prefix=self.prefix)))

    def add_form(self, nid: int, data: Optional[Dict[Any, Any]] = None, raw_data: Optional[str] = None, **options):
        row = {
            "nid": nid,
            "data": raw_data if raw_data is not None else php_serialize(data or {}),
            "prefix_known": options.get("prefix_known", ""),
            "prefix_unknown": options.get("prefix_unknown", ""),
            "message": options.get("message", ""),
            "confirm_subscription": options.get("confirm_subscription", 1),
            "block_unknown_users": options.get("block_unknown_users", 0),
            "create_new_relationship": options.get("create_new_relationship", 0),
            "create_fieldsets": options.get("create_fieldsets", 1),
            "new_contact_source": options.get("new_contact_source", ""),
        }
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    f"INSERT INTO {self.prefix}webform_civicrm_forms ({', '.join(row)}) "
                    f"VALUES ({', '.join(':' + k for k in row)})"
                ),
                row,
            )

    def add_component(self, nid: int, form_key: str, component_type: str, extra: Optional[Dict[Any, Any]] = None):
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    f"INSERT INTO {self.prefix}webform_component (nid, cid, pid, form_key, type, extra) "
                    "VALUES (:nid, :cid, 0, :form_key, :type, :extra)"
                ),
                {
                    "nid": nid,
                    "cid": self._next_cid,
                    "form_key": form_key,
                    "type": component_type,
                    "extra": php_serialize(extra or {}),
                },
            )
        self._next_cid += 1


@pytest.fixture
def legacy_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'legacy.sqlite'}")
    yield engine
    engine.dispose()


@pytest.fixture
def legacy(legacy_engine):
    """Empty legacy database with the webform_civicrm tables."""
    fixture = LegacyFixture(legacy_engine)
    fixture.create_tables()
    return fixture


@pytest.fixture
def civicrm_legacy(legacy):
    """Legacy database holding one CiviCRM webform (nid 1)."""
    legacy.add_form(1, FORM_DATA, prefix_known="Welcome back", message="Not you?")
    legacy.add_component(1, "civicrm_1_contact_1_contact_existing", "civicrm_contact", {
        "widget": "autocomplete",
        "allow_create": 1,
        "attributes": {"results_display": "sort_name"},
    })
    legacy.add_component(1, "civicrm_2_contact_1_contact_existing", "civicrm_contact", {
        "widget": "hidden",
    })
    legacy.add_component(1, "civicrm_1_contact_1_contact_first_name", "textfield", {})
    legacy.add_component(1, "comments", "textarea", {})
    return legacy
