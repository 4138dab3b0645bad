# tests/unit/test_trace_logging.py
import logging

from cardflow.common import tracing


def test_bind_trace_id_adopts_or_mints():
    assert tracing.bind_trace_id("  abc  ") == "abc"
    assert tracing.get_trace_id() == "abc"
    assert len(tracing.bind_trace_id("x" * 100)) == 64

    minted = tracing.bind_trace_id(None)
    assert len(minted) == 32
    assert tracing.get_trace_id() == minted


def test_log_event_carries_fields_and_trace(caplog):
    caplog.set_level(logging.INFO, logger="cardflow.test")
    tracing.set_trace_id("trace-1")
    tracing.log_event(logging.getLogger("cardflow.test"), "run_started", run_id="r1", guests=2, event_date=None)

    [record] = caplog.records
    assert record.event == "run_started"
    assert record.run_id == "r1"
    assert record.guests == 2
    assert record.trace_id == "trace-1"
    assert not hasattr(record, "event_date")
    assert record.getMessage() == "run_started run_id=r1 guests=2"


def test_explicit_trace_id_wins_over_context(caplog):
    caplog.set_level(logging.INFO, logger="cardflow.test")
    tracing.set_trace_id("from-context")
    tracing.log_event(logging.getLogger("cardflow.test"), "rsvp_delivered", trace_id="from-run")
    assert caplog.records[0].trace_id == "from-run"


def test_filter_fills_missing_trace_id():
    tracing.set_trace_id(None)
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
    assert tracing.TraceIdFilter().filter(record) is True
    assert record.trace_id == "-"
