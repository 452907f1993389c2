import typing as tp

from opentelemetry import trace as trace_api
from opentelemetry.sdk import util as open_util
from opentelemetry.sdk._logs import LogRecord
from opentelemetry.sdk.trace import ReadableSpan, StatusCode
from rich.console import Console as RichConsole
from rich.markup import escape

import common_tracing._testing

from ._levels import level_name, severity_to_log_level

CONSOLE: RichConsole | None = None

_LEVEL_MARKUP = {
    "TRACE": "magenta",
    "DEBUG": "cyan",
    "INFO": "green",
    "WARN": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold red",
}


def get_console() -> RichConsole:
    """Only used to render markup to a string, never writes anywhere itself."""
    global CONSOLE
    if CONSOLE is None:
        # No color if testing to allow regexes to work:
        CONSOLE = RichConsole(
            color_system="auto" if not common_tracing._testing.IS_TEST else None, soft_wrap=True
        )
    return CONSOLE


def _render(markup: str) -> str:
    console = get_console()
    with console.capture() as capture:
        console.print(markup, end="")
    return capture.get()


def _entry_fin(out: str) -> str:
    # Useful for splitting during tests:
    if common_tracing._testing.IS_TEST:
        out += "ENTRY_FIN"
    return out


def console_log_formatter(log: LogRecord, show_sids: bool) -> str:
    lvl_desc = _lvl_desc(log)
    lvl_text = f"{lvl_desc}: "
    out = "[{}]{}[/]".format(_LEVEL_MARKUP.get(lvl_desc, "white"), lvl_text)

    # Make sure it doesn't accidentally match rich markup:
    out += escape(_fmt_body(log, lvl_text)) + "\n"
    where = _fmt_where_parts(log, False, show_sids)
    if where:
        out += "[dim italic]{}[/]\n".format(escape(where))

    return _entry_fin(_render(out))


def file_log_formatter(log: LogRecord) -> str:
    lvl_text = "{}: ".format(_lvl_desc(log))
    out = lvl_text + _fmt_body(log, lvl_text) + "\n"
    where = _fmt_where_parts(log, True, True)
    if where:
        out += where + "\n"
    return _entry_fin(out)


def query_log_formatter(log: LogRecord) -> str:
    """Compact: just the message, no level, time or location."""
    return _entry_fin(_body_str(log).rstrip() + "\n")


def console_span_formatter(span: ReadableSpan) -> str:
    parts = _span_parts(span, False)
    out = f"[bold]SPAN: [/]({escape(span.name)}) "
    out += escape(" ".join(f"{k}={v}" for k, v in parts.items() if v is not None))
    return _entry_fin(_render("[dim]" + out + "[/]\n"))


def file_span_formatter(span: ReadableSpan) -> str:
    parts = _span_parts(span, True)
    out = f"SPAN: ({span.name}) "
    out += " ".join(f"{k}={v}" for k, v in parts.items() if v is not None)
    return _entry_fin(out + "\n")


def file_span_start_formatter(span: ReadableSpan) -> str:
    """A span that's only just started, no elapsed or status yet."""
    parts = _span_parts(span, True)
    out = f"SPAN START: ({span.name}) "
    out += " ".join(f"{k}={v}" for k, v in parts.items() if v is not None)
    return _entry_fin(out + "\n")


def _lvl_desc(log: LogRecord) -> str:
    if log.severity_number is None:
        return "UNKNOWN LVL"
    return level_name(severity_to_log_level(log.severity_number))


def _span_parts(span: ReadableSpan, is_file: bool) -> dict[str, tp.Any]:
    parts: dict[str, tp.Any] = {}
    ctx = span.context
    if ctx is not None:
        parts["sid"] = f"0x{trace_api.format_span_id(ctx.span_id)}"
        # Don't bother including trace info if console:
        if is_file:
            parts["tid"] = f"0x{trace_api.format_trace_id(ctx.trace_id)}"

    if span.parent is not None:
        parts["pid"] = f"0x{trace_api.format_span_id(span.parent.span_id)}"

    # Start only needed in file, console elapsed is enough:
    if is_file and span.start_time:
        parts["start"] = open_util.ns_to_iso_str(span.start_time)

    if span.start_time and span.end_time:
        parts["elapsed"] = _format_duration(span.end_time - span.start_time)

    if span.status.status_code is not StatusCode.UNSET:
        if span.status.description:
            parts["status"] = f"{span.status.status_code.name}: {span.status.description}"
        else:
            parts["status"] = span.status.status_code.name

    if span.attributes:
        parts["attrs"] = dict(span.attributes)

    if span.events:
        parts["events"] = [event.name for event in span.events]

    return parts


def _body_str(log: LogRecord) -> str:
    if log.body is None or log.body == "":
        return "NO MESSAGE"
    return log.body if isinstance(log.body, str) else str(log.body)


def _fmt_body(log: LogRecord, lvl_text: str) -> str:
    # Continuation lines line up with the first after the level prefix:
    lvl_text_space = " " * len(lvl_text)
    body_lines = _body_str(log).split("\n")
    body_out = body_lines[0] + "\n"
    for line in body_lines[1:]:
        body_out += lvl_text_space + line + "\n"

    # Ignore any extra whitespace at end of body:
    return body_out.rstrip()


def _fmt_where_parts(log: LogRecord, is_file: bool, show_sids: bool) -> str:
    parts: dict[str, tp.Any] = {}

    if show_sids and log.span_id:
        parts["sid"] = f"0x{trace_api.format_span_id(log.span_id)}"

    if is_file:
        if log.observed_timestamp:
            parts["ts"] = open_util.ns_to_iso_str(log.observed_timestamp)
        if log.trace_id:
            parts["tid"] = f"0x{trace_api.format_trace_id(log.trace_id)}"

    # Always include extra attributes if they've been supplied:
    if log.attributes:
        for key, value in log.attributes.items():
            parts[key] = value

    if not parts:
        return ""
    return "    where {}".format(" ".join(f"{k}={v}" for k, v in parts.items()))


def _format_duration(nanoseconds: int) -> str:
    if nanoseconds < 1000:
        return f"{nanoseconds}ns"
    elif nanoseconds < 1000000:
        return f"{nanoseconds / 1000}μs"
    elif nanoseconds < 1000000000:
        return f"{nanoseconds / 1000000:.1f}ms"
    else:
        return f"{nanoseconds / 1000000000:.2f}s"
