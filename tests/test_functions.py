import pytest

from mediaengines.engine import Command, Engine, ExeArgs
from mediaengines.functions import (
    EngineFunctions,
    GenericFunctions,
    OutputFilter,
    UpdateOptions,
)
from mediaengines.logdata import LogData
from mediaengines.progress import FinishedState


@pytest.fixture
def engine():
    return Engine(name="tool", command_name="tool", valid=True)


def test_dump_json_arguments(engine):
    assert EngineFunctions(engine).dump_json_arguments() == ["--dump-json"]


def test_generic_functions_share_defaults(engine):
    functions = GenericFunctions(engine)
    assert isinstance(functions, EngineFunctions)
    assert functions.dump_json_arguments() == ["--dump-json"]
    assert functions.break_show_list_if_contains(["format", "code"]) is False


def test_command_string_quotes_each_part(engine):
    exe = ExeArgs(["/opt/tool", "sub"], "/opt/tool", ["-v"])
    command = Command(exe, ["my url"])
    result = EngineFunctions(engine).command_string(command)
    assert result == '"/opt/tool" "sub" "-v" "my url"'


def test_media_properties_parses_rows(engine):
    data = "137 mp4 1920x1080 DASH video only\nshort line\n"
    rows = EngineFunctions(engine).media_properties(data)
    assert rows == [["137", "mp4", "1920x1080", "DASH video only"]]


def test_media_properties_accepts_bytes(engine):
    rows = EngineFunctions(engine).media_properties(b"18 mp4 640x360 medium")
    assert rows == [["18", "mp4", "640x360", "medium"]]


def test_media_properties_stops_at_boundary(engine):
    class Bounded(EngineFunctions):
        def break_show_list_if_contains(self, columns):
            return columns[0] == "format"

    data = "22 webm 1280x720 old entry\nformat code extension note\n18 mp4 640x360 medium"
    rows = Bounded(engine).media_properties(data)
    assert rows == [["18", "mp4", "640x360", "medium"]]


def test_update_download_options_appends_and_drops_default(engine):
    engine.options_argument = "-f"
    options = UpdateOptions(quality="best", our_options=["Default", "x", "default"])
    EngineFunctions(engine).update_download_options(options)
    assert options.our_options == ["x", "-f", "best"]


def test_update_download_options_without_quality(engine):
    options = UpdateOptions(our_options=["--newline"])
    EngineFunctions(engine).update_download_options(options)
    assert options.our_options == ["--newline"]


def test_filter_empty_log_returns_empty(engine):
    output_filter = EngineFunctions(engine).make_filter("best")
    assert isinstance(output_filter, OutputFilter)
    assert output_filter.quality == "best"
    assert output_filter(LogData()) == ""


def test_filter_returns_last_line(engine):
    data = LogData()
    data.add("first")
    data.add("second")
    assert OutputFilter("", engine)(data) == "second"


def test_filter_hides_command_line(engine):
    data = LogData()
    data.add("[UMD4] cmd: tool url")
    assert OutputFilter("", engine)(data) == "Processing ..."


def test_filter_progress_report_grows(engine):
    engine.replace_output_with_progress_report = True
    output_filter = OutputFilter("", engine)
    data = LogData()
    data.add("anything")
    first = output_filter(data)
    second = output_filter(data)
    assert first == "Processing ..."
    assert second == first + " ..."


def test_process_data_removes_text(engine):
    engine.remove_text = ["NOISE"]
    output = LogData()
    EngineFunctions(engine).process_data(output, b"helloNOISE\nworld", -1, False)
    assert list(output.lines()) == [(-1, "hello"), (-1, "world")]


def test_process_data_skips_lines(engine):
    engine.skip_line_with_text = ["skip me"]
    output = LogData()
    EngineFunctions(engine).process_data(output, "keep\nplease skip me\n", 3)
    assert [text for _, text in output.lines()] == ["keep"]


def test_process_text_replaces_timer_line(engine):
    output = LogData()
    functions = EngineFunctions(engine)
    functions.process_text(output, "Elapsed Time: 00:00:01", 1)
    functions.process_text(output, "Elapsed Time: 00:00:02", 1)
    assert len(output) == 1
    assert output.last_text() == "Elapsed Time: 00:00:02"


def test_process_text_adds_other_lines(engine):
    output = LogData()
    functions = EngineFunctions(engine)
    functions.process_text(output, "a line", 1)
    functions.process_text(output, "next", 1)
    assert [text for _, text in output.lines()] == ["a line", "next"]


def test_update_text_on_complete_uses_background_text(engine):
    state = FinishedState(success=True, cancelled=False, duration=0)
    result = EngineFunctions(engine).update_text_on_complete_download(
        "ui text", "bk text", "", state
    )
    assert result.startswith("Download completed, ")
    assert result.endswith("\nbk text")
    assert "ui text" not in result


def test_update_text_on_failure_includes_options(engine):
    state = FinishedState(success=False, cancelled=False, duration=0)
    result = EngineFunctions(engine).update_text_on_complete_download(
        "ui", "bk", "-f best", state
    )
    assert result.split("\n")[0] == "-f best"
    assert "Download Failed" in result
    assert result.endswith("\nbk")