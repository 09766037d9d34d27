"""Reader for the webform_civicrm tables of a legacy (Drupal 7) database."""

import logging
from typing import Any, Dict, List, Optional

import phpserialize
from pydantic import ValidationError
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine

from ..exceptions import ConfigurationError, LegacyDataError, MigrateSkipRowError
from ..models.legacy import CivicrmFormRecord, ComponentRecord

logger = logging.getLogger(__name__)

FORMS_TABLE = "webform_civicrm_forms"
COMPONENT_TABLE = "webform_component"

FORM_COLUMNS = (
    "nid",
    "data",
    "prefix_known",
    "prefix_unknown",
    "message",
    "confirm_subscription",
    "block_unknown_users",
    "create_new_relationship",
    "create_fieldsets",
    "new_contact_source",
)


def unserialize(value: Any) -> Dict[Any, Any]:
    """
    Decode a PHP serialize() blob into a dictionary.

    Args:
        value: Serialized string or bytes, or None

    Returns:
        The decoded array as a dict; empty dict for empty input

    Raises:
        LegacyDataError: If the blob is corrupt or not an array
    """
    if value is None or value == "" or value == b"":
        return {}
    if isinstance(value, str):
        value = value.encode("utf-8")

    try:
        decoded = phpserialize.loads(value, decode_strings=True)
    except ValueError as e:
        raise LegacyDataError(f"Failed to unserialize legacy data: {e}")

    if decoded is False or decoded is None:
        return {}
    if not isinstance(decoded, dict):
        raise LegacyDataError(f"Expected a serialized array, got {type(decoded).__name__}")
    return decoded


class LegacyDatabase:
    """
    Read-only access to the Drupal 7 webform and webform_civicrm tables.

    Supports:
    - Any SQLAlchemy database URL (MySQL in production, SQLite for tests)
    - Drupal table prefixes
    - Decoding of the PHP serialized data and extra columns
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        table_prefix: str = "",
        engine: Optional[Engine] = None
    ):
        """
        Initialize the legacy database reader.

        Args:
            database_url: SQLAlchemy URL of the legacy database
            table_prefix: Drupal table prefix of the legacy site
            engine: Existing engine to use instead of database_url
        """
        if engine is None:
            if not database_url:
                raise ConfigurationError("A legacy database URL is required")
            engine = create_engine(database_url, pool_pre_ping=True)

        self.engine = engine
        self.table_prefix = table_prefix or ""

    def table(self, name: str) -> str:
        """Get the prefixed name of a table."""
        return f"{self.table_prefix}{name}"

    def initialize(self) -> None:
        """
        Check that the webform_civicrm tables exist.

        Raises:
            ConfigurationError: If a required table is missing
        """
        existing = set(inspect(self.engine).get_table_names())
        missing = [t for t in (FORMS_TABLE, COMPONENT_TABLE) if self.table(t) not in existing]
        if missing:
            raise ConfigurationError(
                f"Legacy database is missing tables: {', '.join(self.table(t) for t in missing)}"
            )
        logger.info(f"Legacy database ready ({self.engine.url.get_backend_name()})")

    def _fetch_all(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self.engine.connect() as conn:
            result = conn.execute(text(sql), params)
            return [dict(row._mapping) for row in result]

    def get_form_record(self, nid: int) -> Optional[CivicrmFormRecord]:
        """
        Get the webform_civicrm_forms row of a webform.

        Args:
            nid: Node id of the webform in Drupal 7

        Returns:
            The record, or None when the form has no CiviCRM integration

        Raises:
            MigrateSkipRowError: If more than one row exists for the nid
        """
        rows = self._fetch_all(
            f"SELECT {', '.join(FORM_COLUMNS)} FROM {self.table(FORMS_TABLE)} WHERE nid = :nid",
            {"nid": nid},
        )
        if len(rows) > 1:
            raise MigrateSkipRowError(
                f"Expected one row per nid in {FORMS_TABLE} got {len(rows)} for nid {nid!r}"
            )
        if not rows:
            return None

        row = rows[0]
        row["data"] = unserialize(row.get("data"))
        try:
            return CivicrmFormRecord(**row)
        except ValidationError as e:
            raise LegacyDataError(f"Invalid {FORMS_TABLE} row for nid {nid!r}: {e}")

    def get_form_settings(self, nid: int) -> Dict[Any, Any]:
        """Get the unserialized CiviCRM settings of a webform ({} if none)."""
        record = self.get_form_record(nid)
        return record.data if record else {}

    def get_component(self, nid: int, form_key: str) -> Optional[ComponentRecord]:
        """
        Get the webform_component row for a form key.

        Raises:
            MigrateSkipRowError: If more than one row exists for the key pair
        """
        rows = self._fetch_all(
            f"SELECT nid, cid, pid, form_key, type, extra FROM {self.table(COMPONENT_TABLE)} "
            "WHERE nid = :nid AND form_key = :form_key",
            {"nid": nid, "form_key": form_key},
        )
        if len(rows) > 1:
            raise MigrateSkipRowError(
                f"Expected one row in {COMPONENT_TABLE} for nid {nid!r} and form_key "
                f"{form_key!r}, got {len(rows)}"
            )
        if not rows:
            return None

        row = rows[0]
        row["extra"] = unserialize(row.get("extra"))
        try:
            return ComponentRecord(**row)
        except ValidationError as e:
            raise LegacyDataError(f"Invalid {COMPONENT_TABLE} row for {form_key!r}: {e}")

    def get_component_extra(self, nid: int, form_key: str) -> Dict[Any, Any]:
        """Get the unserialized extra data of a component ({} if none)."""
        component = self.get_component(nid, form_key)
        return component.extra if component else {}

    def get_component_type(self, nid: int, form_key: str) -> Optional[str]:
        """Get the Drupal 7 component type of a form key."""
        component = self.get_component(nid, form_key)
        return component.type if component else None

    def list_form_nids(self) -> List[int]:
        """List the nids of all webforms with CiviCRM settings."""
        rows = self._fetch_all(f"SELECT nid FROM {self.table(FORMS_TABLE)} ORDER BY nid", {})
        return [int(r["nid"]) for r in rows]
