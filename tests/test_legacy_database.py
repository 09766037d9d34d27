"""Tests for webform_civicrm_migrate/extractors/legacy_database.py."""

import pytest

from webform_civicrm_migrate.exceptions import (
    ConfigurationError,
    LegacyDataError,
    MigrateSkipRowError,
)
from webform_civicrm_migrate.extractors.legacy_database import LegacyDatabase, unserialize

from conftest import FORM_DATA, LegacyFixture, php_serialize


class TestUnserialize:
    def test_decodes_nested_array(self):
        assert unserialize(php_serialize(FORM_DATA)) == FORM_DATA

    def test_accepts_bytes(self):
        assert unserialize(b'a:1:{s:6:"widget";s:6:"hidden";}') == {"widget": "hidden"}

    @pytest.mark.parametrize("value", [None, "", b""])
    def test_empty_input(self, value):
        assert unserialize(value) == {}

    def test_serialized_false_is_empty(self):
        assert unserialize("b:0;") == {}

    def test_corrupt_blob(self):
        with pytest.raises(LegacyDataError):
            unserialize("garbage")

    def test_scalar_is_rejected(self):
        with pytest.raises(LegacyDataError, match="array"):
            unserialize('s:3:"abc";')


class TestLegacyDatabase:
    def test_requires_url_or_engine(self):
        with pytest.raises(ConfigurationError):
            LegacyDatabase()

    def test_form_record(self, civicrm_legacy):
        record = civicrm_legacy.db.get_form_record(1)

        assert record.nid == 1
        assert record.data == FORM_DATA
        assert record.prefix_known == "Welcome back"
        assert record.message == "Not you?"
        assert record.create_fieldsets == 1

    def test_form_options_exclude_data(self, civicrm_legacy):
        options = civicrm_legacy.db.get_form_record(1).form_options()
        assert "data" not in options
        assert "nid" not in options
        assert options["prefix_known"] == "Welcome back"

    def test_absent_form(self, legacy):
        assert legacy.db.get_form_record(5) is None
        assert legacy.db.get_form_settings(5) == {}

    def test_form_settings(self, civicrm_legacy):
        settings = civicrm_legacy.db.get_form_settings(1)
        assert settings["contact"][2]["contact"][1]["contact_type"] == "organization"

    def test_duplicate_form_rows_skip(self, legacy):
        legacy.add_form(3, FORM_DATA)
        legacy.add_form(3, FORM_DATA)
        with pytest.raises(MigrateSkipRowError, match="Expected one row"):
            legacy.db.get_form_record(3)

    def test_corrupt_form_data(self, legacy):
        legacy.add_form(4, raw_data="a:1:{broken")
        with pytest.raises(LegacyDataError):
            legacy.db.get_form_settings(4)

    def test_component_extra_and_type(self, civicrm_legacy):
        db = civicrm_legacy.db
        key = "civicrm_1_contact_1_contact_existing"

        assert db.get_component_type(1, key) == "civicrm_contact"
        assert db.get_component_extra(1, key) == {
            "widget": "autocomplete",
            "allow_create": 1,
            "attributes": {"results_display": "sort_name"},
        }

    def test_duplicate_component_rows_skip(self, civicrm_legacy):
        civicrm_legacy.add_component(1, "comments", "textfield", {})

        with pytest.raises(MigrateSkipRowError, match="Expected one row in webform_component"):
            civicrm_legacy.db.get_component_type(1, "comments")
        with pytest.raises(MigrateSkipRowError):
            civicrm_legacy.db.get_component_extra(1, "comments")

    def test_missing_component(self, civicrm_legacy):
        assert civicrm_legacy.db.get_component(1, "nope") is None
        assert civicrm_legacy.db.get_component_extra(1, "nope") == {}
        assert civicrm_legacy.db.get_component_type(1, "nope") is None

    def test_components_are_scoped_by_nid(self, civicrm_legacy):
        assert civicrm_legacy.db.get_component_type(2, "comments") is None

    def test_list_form_nids(self, legacy):
        legacy.add_form(7, FORM_DATA)
        legacy.add_form(2, {})
        assert legacy.db.list_form_nids() == [2, 7]

    def test_initialize(self, legacy):
        legacy.db.initialize()

    def test_initialize_missing_tables(self, legacy_engine):
        with pytest.raises(ConfigurationError, match="webform_civicrm_forms"):
            LegacyDatabase(engine=legacy_engine).initialize()

    def test_table_prefix(self, legacy_engine):
        prefixed = LegacyFixture(legacy_engine, prefix="d7_")
        prefixed.create_tables()
        prefixed.add_form(1, FORM_DATA)

        assert prefixed.db.table("webform_component") == "d7_webform_component"
        prefixed.db.initialize()
        assert prefixed.db.get_form_settings(1) == FORM_DATA
