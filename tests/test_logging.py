from __future__ import annotations

import logging

from rich.logging import RichHandler

from lexagent.logging import build_formatter, configure_logging, run_context, set_step


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("lexagent.test", logging.INFO, __file__, 1, "Tool executed", None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_extra_fields_are_rendered() -> None:
    record = _record(session="s1", step="tool_loop", tool="search_case_law", cached=True)
    text = build_formatter().format(record)

    assert "session=s1 step=tool_loop" in text
    assert text.endswith("Tool executed tool='search_case_law' cached=True")


def test_session_context_is_bound_and_restored() -> None:
    configure_logging("INFO")
    handler = next(h for h in logging.getLogger().handlers if isinstance(h, RichHandler))
    ctx_filter = handler.filters[-1]

    with run_context(session_id="abc", step="init"):
        set_step("searching")
        inside = _record()
        ctx_filter.filter(inside)
    outside = _record()
    ctx_filter.filter(outside)

    assert (inside.session, inside.step) == ("abc", "searching")
    assert outside.session == "-"


def test_configure_logging_is_idempotent() -> None:
    configure_logging("INFO")
    configure_logging("DEBUG")

    root = logging.getLogger()
    handlers = [h for h in root.handlers if isinstance(h, RichHandler)]
    assert len(handlers) == 1
    assert len(handlers[0].filters) == 1
    assert root.level == logging.DEBUG
