"""Property-based test for logging completeness."""

import json
from io import StringIO
from unittest.mock import patch

from hypothesis import given
from hypothesis import strategies as st

from plugin_release.config import close_logging, setup_logging


@given(
    operation_name=st.text(
        min_size=1,
        max_size=50,
        alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-",
    ),
    success=st.booleans(),
    files_count=st.integers(min_value=0, max_value=100),
    error_message=st.text(max_size=100),
)
def test_every_stage_logs_start_and_completion(operation_name, success, files_count, error_message):
    """For any pipeline stage, start and completion are logged as structured records."""
    log_stream = StringIO()

    with patch("sys.stdout", log_stream):
        system_logger = setup_logging("INFO", log_format="json")
        operation_logger = system_logger.get_operation_logger()

        operation_logger.start_operation(operation_name, files_count=files_count)
        if success:
            operation_logger.complete_operation(operation_name, success=True, entries=files_count)
        else:
            operation_logger.log_error(operation_name, ValueError(error_message))
            operation_logger.complete_operation(operation_name, success=False)
        close_logging()

    records = [json.loads(line) for line in log_stream.getvalue().splitlines() if line.strip()]
    tracked = [r for r in records if r.get("component") == "operation_tracker"]

    assert tracked[0]["message"] == f"Starting operation: {operation_name}"
    assert tracked[0]["files_count"] == files_count
    assert tracked[-1]["operation"] == operation_name
    assert tracked[-1]["success"] is success
    assert isinstance(tracked[-1]["duration_ms"], int)

    for record in records:
        assert {"timestamp", "level", "logger", "message"} <= set(record)

    if success:
        assert tracked[-1]["message"] == f"Operation completed: {operation_name}"
        assert tracked[-1]["entries"] == files_count
    else:
        errors = [r for r in tracked if r["level"] == "ERROR"]
        assert errors[0]["error_type"] == "ValueError"
        assert tracked[-1]["message"] == f"Operation failed: {operation_name}"
