import logging

import httpx

from clinical_ingestion.models import Outcome
from clinical_ingestion.workflow.processor import InstrumentProcessor
from clinical_ingestion.workflow.stats import IngestionStats


def test_absent_file_is_skipped_without_error(make_project, fake_service_factory):
    project = make_project("P1", instruments=("moca",))
    service = fake_service_factory()
    stats = IngestionStats()

    outcome = InstrumentProcessor(service).process(project, "moca", stats)

    assert outcome is Outcome.SKIPPED
    assert (stats.total, stats.skipped, stats.failed) == (1, 1, 0)
    assert stats.errors == []
    assert service.uploads == []


def test_missing_mandatory_column_fails_before_upload(
    make_project, write_instrument, fake_service_factory
):
    project = make_project("P1")
    write_instrument(project, "demographics", header=("PSCID", "score"))
    service = fake_service_factory()
    stats = IngestionStats()

    outcome = InstrumentProcessor(service).process(project, "demographics", stats)

    assert outcome is Outcome.FAILED
    assert stats.failed == 1
    assert len(stats.errors) == 1
    (entry,) = stats.errors
    assert entry.instrument == "demographics"
    assert entry.file == project.instrument_path("demographics")
    assert [error.message for error in entry.errors] == ["Missing required column: Visit_label"]
    assert service.uploads == []


def test_successful_upload_records_rows(make_project, write_instrument, fake_service_factory):
    project = make_project("P1")
    path = write_instrument(project, "demographics", rows=10)
    service = fake_service_factory(
        {"demographics": {"success": True, "message": "Saved 7 out of 10"}}
    )
    stats = IngestionStats()

    outcome = InstrumentProcessor(service).process(project, "demographics", stats)

    assert outcome is Outcome.SUCCESS
    assert service.uploads == [("demographics", path, "CREATE_SESSIONS")]
    assert (stats.rows_uploaded, stats.rows_skipped) == (7, 3)
    assert stats.success == 1


def test_id_mappings_count_only_when_rows_saved(
    make_project, write_instrument, fake_service_factory
):
    project = make_project("P1", instruments=("visits", "baseline"))
    write_instrument(project, "visits")
    write_instrument(project, "baseline")
    mappings = [
        {"ExtStudyID": "S1", "CandID": "300001"},
        {"ExtStudyID": "S2", "CandID": "300002"},
    ]
    service = fake_service_factory(
        {
            "visits": {"success": True, "message": "Sessions created", "idMapping": mappings},
            "baseline": {"success": True, "message": "Saved 2 out of 2", "idMapping": mappings},
        }
    )
    processor = InstrumentProcessor(service)

    no_rows = IngestionStats()
    processor.process(project, "visits", no_rows)
    with_rows = IngestionStats()
    processor.process(project, "baseline", with_rows)

    assert no_rows.candidates_created == 0
    assert no_rows.rows_uploaded == 0
    assert with_rows.candidates_created == 2


def test_rejection_records_all_errors_and_logs_preview(
    make_project, write_instrument, fake_service_factory, caplog
):
    project = make_project("P1")
    write_instrument(project, "demographics")
    errors = [{"message": f"Row {index}: invalid"} for index in range(8)]
    service = fake_service_factory({"demographics": {"success": False, "message": errors}})
    stats = IngestionStats()

    with caplog.at_level(logging.ERROR, logger="clinical_ingestion"):
        outcome = InstrumentProcessor(service).process(project, "demographics", stats)

    assert outcome is Outcome.FAILED
    (entry,) = stats.errors
    assert len(entry.errors) == 8
    messages = [record.getMessage() for record in caplog.records]
    assert any("5. Row 4: invalid" in message for message in messages)
    assert not any("6. Row 5: invalid" in message for message in messages)
    assert any("... and 3 more error(s)" in message for message in messages)


def test_remote_fault_is_contained(make_project, write_instrument, fake_service_factory):
    project = make_project("P1")
    write_instrument(project, "demographics")
    service = fake_service_factory(
        {"demographics": httpx.ConnectError("connection refused")}
    )
    stats = IngestionStats()

    outcome = InstrumentProcessor(service, verbose=True).process(project, "demographics", stats)

    assert outcome is Outcome.FAILED
    (entry,) = stats.errors
    assert [error.message for error in entry.errors] == ["connection refused"]


def test_malformed_response_is_a_fault(make_project, write_instrument, fake_service_factory):
    project = make_project("P1")
    write_instrument(project, "demographics")
    service = fake_service_factory({"demographics": ["not", "a", "mapping"]})
    stats = IngestionStats()

    outcome = InstrumentProcessor(service).process(project, "demographics", stats)

    assert outcome is Outcome.FAILED
    assert len(stats.errors) == 1


def test_dry_run_never_uploads(make_project, write_instrument, fake_service_factory):
    project = make_project("P1")
    write_instrument(project, "demographics")
    service = fake_service_factory()
    stats = IngestionStats()

    outcome = InstrumentProcessor(service, dry_run=True).process(project, "demographics", stats)

    assert outcome is Outcome.SUCCESS
    assert service.uploads == []
    assert service.lookups == ["demographics"]
    assert stats.rows_uploaded == 0


def test_unregistered_instrument_still_uploads(
    make_project, write_instrument, fake_service_factory, caplog
):
    project = make_project("P1")
    write_instrument(project, "demographics")
    service = fake_service_factory(exists=False)
    stats = IngestionStats()

    with caplog.at_level(logging.WARNING, logger="clinical_ingestion"):
        outcome = InstrumentProcessor(service).process(project, "demographics", stats)

    assert outcome is Outcome.SUCCESS
    assert len(service.uploads) == 1
    assert any("may not exist" in record.getMessage() for record in caplog.records)


def test_archive_moves_uploaded_file(make_project, write_instrument, fake_service_factory):
    project = make_project("P1")
    path = write_instrument(project, "demographics")
    stats = IngestionStats()

    InstrumentProcessor(fake_service_factory(), archive=True).process(
        project, "demographics", stats
    )

    assert not path.exists()
    archived = list((project.mount_path / "processed" / "clinical").glob("*/demographics.csv"))
    assert len(archived) == 1


def test_non_utf8_file_is_uploaded(make_project, fake_service_factory):
    project = make_project("P1")
    path = project.instrument_path("demographics")
    path.write_bytes("PSCID,Visit_label,name\nS1,V1,Renée\n".encode("latin-1"))
    service = fake_service_factory()
    stats = IngestionStats()

    outcome = InstrumentProcessor(service).process(project, "demographics", stats)

    assert outcome is Outcome.SUCCESS
    assert service.uploads == [("demographics", path, "CREATE_SESSIONS")]
    assert stats.errors == []
