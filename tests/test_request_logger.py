import logging

from metadata_app.request_logger import log_request_to_console


def test_log_line_format(caplog):
    with caplog.at_level(logging.INFO, logger="metadata_app.request_logger"):
        log_request_to_console("GET", "/computeMetadata/v1/project/project-id", 200, 4)
        log_request_to_console("POST", "/x?y=1", 405, None)

    assert caplog.messages == [
        "GET /computeMetadata/v1/project/project-id 200 size=4",
        "POST /x?y=1 405 size=0",
    ]
