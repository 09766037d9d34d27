"""End to end tests for MigrationOrchestrator and the CLI."""

import json

import pytest
import yaml

from webform_civicrm_migrate.cli import load_config, main
from webform_civicrm_migrate.exceptions import ConfigurationError
from webform_civicrm_migrate.extractors.legacy_database import LegacyDatabase
from webform_civicrm_migrate.extractors.row_file import RowFileExtractor
from webform_civicrm_migrate.loaders.memory_store import MemoryWebformStore
from webform_civicrm_migrate.models.migration import MigrationConfig, MigrationStatus
from webform_civicrm_migrate.models.record import RowStatus
from webform_civicrm_migrate.orchestrator import MigrationOrchestrator
from webform_civicrm_migrate.services.handler_manager import CIVICRM_HANDLER_ID

from conftest import ELEMENTS_YAML

PLAIN_ELEMENTS = "name:\n  '#type': textfield\n  '#title': Name\n"


class FailingStore(MemoryWebformStore):
    """Memory store that cannot write one webform."""

    def __init__(self, failing_id):
        super().__init__()
        self.failing_id = failing_id

    def _write(self, webform):
        if webform.id == self.failing_id:
            raise OSError(f"Disk full while writing {webform.id}")
        super()._write(webform)


@pytest.fixture
def rows_file(tmp_path):
    path = tmp_path / "rows.yml"
    path.write_text(yaml.safe_dump({"rows": [
        {"nid": 1, "title": "Event registration", "elements": ELEMENTS_YAML},
        {"nid": "abc", "title": "Broken", "elements": ELEMENTS_YAML},
        {"nid": 2, "title": "Contact us", "elements": PLAIN_ELEMENTS},
    ]}, sort_keys=False))
    return path


@pytest.fixture
def config(tmp_path, rows_file):
    return MigrationConfig(
        name="test",
        rows_file=str(rows_file),
        destination_dir=str(tmp_path / "sync"),
        output_dir=str(tmp_path / "out"),
        id_map_file=str(tmp_path / "out" / "id_map.json"),
    )


class TestRunMigration:
    def test_full_run(self, civicrm_legacy, config, tmp_path):
        orchestrator = MigrationOrchestrator(config, legacy=civicrm_legacy.db)

        result = orchestrator.run_migration()

        assert result.status == MigrationStatus.COMPLETED
        assert result.rows_skipped == 1
        assert result.rows_failed == 0
        assert [phase.rows_imported for phase in result.phases] == [0, 2, 1]

        sync = tmp_path / "sync"
        assert sorted(p.name for p in sync.iterdir()) == [
            "webform.webform.webform_1.yml",
            "webform.webform.webform_2.yml",
        ]

        exported = yaml.safe_load((sync / "webform.webform.webform_1.yml").read_text())
        assert exported["title"] == "Event registration"
        settings = exported["handlers"][CIVICRM_HANDLER_ID]["settings"]
        assert settings["number_of_contacts"] == 2
        assert settings["prefix_known"] == "Welcome back"

        elements = yaml.safe_load(exported["elements"])
        contact = elements["civicrm_1_contact_1_fieldset_fieldset"]["civicrm_1_contact_1_contact_existing"]
        assert contact["#contact_type"] == "individual"

        plain = yaml.safe_load((sync / "webform.webform.webform_2.yml").read_text())
        assert plain["handlers"] == {}

    def test_skipped_row_is_mapped_as_failed(self, civicrm_legacy, config):
        orchestrator = MigrationOrchestrator(config, legacy=civicrm_legacy.db)
        orchestrator.run_migration()

        entry = orchestrator.id_map.get_row_by_source("abc")
        assert entry["status"] == RowStatus.FAILED.value
        assert entry["destid1"] is None
        assert "numeric nid" in entry["message"]

        with open(config.id_map_file) as f:
            saved = json.load(f)
        assert {row["sourceid1"] for row in saved["rows"]} == {"1", "abc", "2"}

    def test_report_is_written(self, civicrm_legacy, config, tmp_path):
        MigrationOrchestrator(config, legacy=civicrm_legacy.db).run_migration()

        reports = list((tmp_path / "out" / "logs").glob("migration_report_*.json"))
        assert len(reports) == 1
        with open(reports[0]) as f:
            report = json.load(f)
        assert report["status"] == "completed"
        assert [p["phase"] for p in report["phases"]] == ["pre_import", "importing", "post_import"]
        assert report["config"]["name"] == "test"
        assert len(report["id_map"]) == 3

    def test_dry_run_keeps_results_in_memory(self, civicrm_legacy, config, tmp_path):
        config.dry_run = True
        orchestrator = MigrationOrchestrator(config, legacy=civicrm_legacy.db)

        result = orchestrator.run_migration()

        assert result.status == MigrationStatus.COMPLETED
        assert isinstance(orchestrator.store, MemoryWebformStore)
        assert orchestrator.store.load("webform_1").has_handler(CIVICRM_HANDLER_ID)
        assert not (tmp_path / "sync").exists()
        assert not (tmp_path / "out" / "id_map.json").exists()

    def test_max_errors_fails_run(self, civicrm_legacy, config):
        config.max_errors = 1
        result = MigrationOrchestrator(config, legacy=civicrm_legacy.db).run_migration()

        assert result.status == MigrationStatus.FAILED
        assert "Max errors" in result.errors[0]["error"]

    def test_store_failure_with_continue_on_error(self, civicrm_legacy, config):
        orchestrator = MigrationOrchestrator(config, legacy=civicrm_legacy.db, store=FailingStore("webform_2"))

        result = orchestrator.run_migration()

        assert result.status == MigrationStatus.COMPLETED
        assert result.rows_failed == 1
        assert orchestrator.id_map.get_row_by_source(2)["status"] == RowStatus.FAILED.value

    def test_store_failure_stops_run(self, civicrm_legacy, config):
        config.continue_on_error = False
        orchestrator = MigrationOrchestrator(config, legacy=civicrm_legacy.db, store=FailingStore("webform_1"))

        result = orchestrator.run_migration()

        assert result.status == MigrationStatus.FAILED
        assert result.errors[0]["phase"] == MigrationStatus.IMPORTING.value
        assert "Disk full" in result.errors[0]["error"]

    def test_missing_legacy_tables_fails_pre_import(self, legacy_engine, config):
        result = MigrationOrchestrator(config, legacy=LegacyDatabase(engine=legacy_engine)).run_migration()

        assert result.status == MigrationStatus.FAILED
        assert result.errors[0]["phase"] == MigrationStatus.PRE_IMPORT.value

    def test_unreadable_rows_file_fails_run(self, civicrm_legacy, config, rows_file):
        rows_file.write_text("rows: [unclosed")

        result = MigrationOrchestrator(config, legacy=civicrm_legacy.db).run_migration()

        assert result.status == MigrationStatus.FAILED
        assert result.errors[0]["phase"] == MigrationStatus.IMPORTING.value
        assert "Invalid rows file" in result.errors[0]["error"]
        assert result.get_phase(MigrationStatus.IMPORTING).errors

    def test_extraction_errors_reach_report(self, civicrm_legacy, config, rows_file, tmp_path):
        rows_file.write_text(yaml.safe_dump([{"nid": 2, "elements": PLAIN_ELEMENTS}, ["not", "a", "row"]]))

        result = MigrationOrchestrator(config, legacy=civicrm_legacy.db).run_migration()

        assert result.status == MigrationStatus.COMPLETED
        importing = result.get_phase(MigrationStatus.IMPORTING)
        assert importing.rows_imported == 1
        assert importing.errors == [{"nid": None, "error": f"Row 1 in {rows_file} is not a mapping"}]

        report_path = next((tmp_path / "out" / "logs").glob("migration_report_*.json"))
        with open(report_path) as f:
            report = json.load(f)
        assert "not a mapping" in report["phases"][1]["errors"][0]["error"]

    def test_rollback(self, civicrm_legacy, config, tmp_path):
        orchestrator = MigrationOrchestrator(config, legacy=civicrm_legacy.db)
        orchestrator.run_migration()

        assert orchestrator.rollback() == 2
        assert list((tmp_path / "sync").iterdir()) == []

    def test_requires_legacy_database_url(self, config, monkeypatch):
        monkeypatch.delenv("LEGACY_DATABASE_URL", raising=False)
        with pytest.raises(ConfigurationError):
            MigrationOrchestrator(config)


class TestPreviewRows:
    def test_preview_marks_skipped_rows(self, civicrm_legacy, config, rows_file):
        extractor = RowFileExtractor(file_path=str(rows_file))
        orchestrator = MigrationOrchestrator(
            config, legacy=civicrm_legacy.db, extractor=extractor, store=MemoryWebformStore()
        )

        rows = orchestrator.preview_rows(extractor.extract().rows)

        assert isinstance(rows[0].get("elements"), dict)
        assert "numeric nid" in rows[1].get("@skip_reason")
        assert rows[2].get("elements") == PLAIN_ELEMENTS
        assert orchestrator.store.load_all() == []


class TestCli:
    def test_load_config(self, tmp_path):
        path = tmp_path / "migration.yml"
        path.write_text("name: staging\ntable_prefix: d7_\nbatch_size: 10\n")

        config = load_config(str(path))

        assert config.name == "staging"
        assert config.table_prefix == "d7_"
        assert config.batch_size == 10

    def test_load_config_rejects_non_mapping(self, tmp_path):
        path = tmp_path / "migration.yml"
        path.write_text("- one\n- two\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_load_config_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "missing.yml"))

    def test_run_command(self, civicrm_legacy, rows_file, tmp_path, capsys):
        path = tmp_path / "migration.yml"
        path.write_text(yaml.safe_dump({
            "name": "cli run",
            "legacy_database_url": str(civicrm_legacy.engine.url),
            "rows_file": str(rows_file),
            "destination_dir": str(tmp_path / "sync"),
            "output_dir": str(tmp_path / "out"),
        }))

        assert main(["run", "--config", str(path)]) == 0
        assert "Skipped: 1" in capsys.readouterr().out
        assert (tmp_path / "sync" / "webform.webform.webform_1.yml").exists()

    def test_settings_command(self, civicrm_legacy, capsys):
        code = main(["settings", "--database-url", str(civicrm_legacy.engine.url), "--nid", "1"])

        assert code == 0
        output = yaml.safe_load(capsys.readouterr().out)
        assert output[1]["number_of_contacts"] == 2
        assert output[1]["1_contact_type"] == "individual"
        assert output[1]["data"]["contact"][1]["contact"][1]["contact_sub_type"] == {"student": "student"}

    def test_preview_command(self, civicrm_legacy, rows_file, capsys):
        code = main([
            "preview",
            "--input", str(rows_file),
            "--database-url", str(civicrm_legacy.engine.url),
            "--nid", "1",
        ])

        assert code == 0
        output = yaml.safe_load(capsys.readouterr().out)
        assert len(output) == 1
        assert "civicrm_1_contact_1_fieldset_fieldset" in output[0]["elements"]

    def test_missing_database_url(self, monkeypatch):
        monkeypatch.delenv("LEGACY_DATABASE_URL", raising=False)
        assert main(["settings"]) == 2
