import logging

from clinical_ingestion.services.logging import get_logger, project_log_handler


def test_get_logger_namespaces_names():
    assert get_logger().name == "clinical_ingestion"
    assert get_logger("clinical_ingestion.workflow").name == "clinical_ingestion.workflow"
    assert get_logger("helpers").name == "clinical_ingestion.helpers"


def test_project_log_handler_writes_and_detaches(tmp_path):
    logger = get_logger("workflow.test")
    logger.setLevel(logging.DEBUG)
    root = logging.getLogger("clinical_ingestion")
    before = list(root.handlers)

    with project_log_handler(tmp_path / "project-logs") as handler:
        assert handler in root.handlers
        logger.info("processing moca")

    assert root.handlers == before
    content = (tmp_path / "project-logs" / "clinical.log").read_text(encoding="utf-8")
    assert "processing moca" in content


def test_project_log_handler_without_path_is_noop():
    root = logging.getLogger("clinical_ingestion")
    before = list(root.handlers)

    with project_log_handler(None) as handler:
        assert handler is None

    assert root.handlers == before
