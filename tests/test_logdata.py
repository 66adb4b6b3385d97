import json

import pytest

from mediaengines.logdata import (
    LogData,
    Logger,
    LoggerWrapper,
    LogLine,
    LogUpdater,
    OutputRules,
    update_log,
)

YTDL_CONTROL = {
    "Connector": "&&",
    "lhs": {"startsWith": "[download]"},
    "rhs": {"contains": "ETA"},
}


def ytdl_rules(**kwargs):
    values = dict(
        control_structure=YTDL_CONTROL,
        skip_lines_with_text=["(pass -k to keep)"],
        split_lines_by=["\n"],
        like_youtube_dl=True,
    )
    values.update(kwargs)
    return OutputRules(**values)


def test_log_line_replace_marks_progress():
    line = LogLine("first", 3)
    line.replace("second")
    assert (line.text, line.id, line.progress_line) == ("second", 3, True)


def test_add_and_join():
    data = LogData()
    data.add("a")
    data.add("b", 2)
    assert len(data) == 2
    assert data.to_string() == "a\nb"
    assert data.to_line() == "ab"
    assert data.to_string_list() == ["a", "b"]
    assert list(data.lines()) == [(-1, "a"), (2, "b")]
    assert data[1] == "b"


def test_empty_data():
    data = LogData()
    assert data.is_empty()
    assert data.to_string() == ""
    assert data.to_string_list() == []
    with pytest.raises(IndexError):
        data.last_text()


def test_replace_last_and_remove_last():
    data = LogData()
    data.add("a")
    data.add("b")
    data.replace_last("c")
    assert data.last_text() == "c"
    assert data.last_line_is_progress_line()
    data.remove_last()
    assert data.to_string_list() == ["a"]
    data.clear()
    assert data.is_empty()


def test_replace_or_add_replaces_newest_line_of_same_id():
    data = LogData()
    data.add("x1", 1)
    data.add("y1", 2)
    data.replace_or_add("x2", 1, lambda t: True, lambda t: False)
    assert data.to_string_list() == ["x2", "y1"]
    assert data.lines().__next__() == (1, "x2")


def test_replace_or_add_inserts_after_matching_line():
    data = LogData()
    data.add("x1", 1)
    data.add("y1", 2)
    data.replace_or_add("x2", 1, lambda t: True, lambda t: True)
    assert data.to_string_list() == ["x1", "x2", "y1"]
    data.replace_or_add("x3", 1, lambda t: False, lambda t: False)
    assert data.to_string_list() == ["x1", "x2", "x3", "y1"]


def test_replace_or_add_appends_for_unknown_id():
    data = LogData()
    data.add("x1", 1)
    data.replace_or_add("z", 9, lambda t: True, lambda t: False)
    assert data.to_string_list() == ["x1", "z"]


def test_post_process_marker_sets_done():
    data = LogData("[postprocess-marker]")
    data.add("[postprocess-marker]", 1)
    assert data.done_downloading
    assert data.is_empty()


def test_progress_lines_collapse_with_id():
    data = LogData()
    chunk = "[download] Destination: a.mp4\n[download] 1.0% ETA 00:10\n"
    update_log(chunk, ytdl_rules(), data, 1)
    update_log("[download] 2.0% ETA 00:09", ytdl_rules(), data, 1)
    assert data.to_string_list() == [
        "[download] Destination: a.mp4",
        "[download] 2.0% ETA 00:09",
    ]
    assert data.last_line_is_progress_line()


def test_progress_lines_collapse_without_id():
    data = LogData()
    update_log("[download] 1.0% ETA 00:10", ytdl_rules(), data)
    update_log("[download] 2.0% ETA 00:09", ytdl_rules(), data)
    assert data.to_string_list() == ["[download] 2.0% ETA 00:09"]


def test_finished_progress_line_is_kept():
    data = LogData()
    update_log("[download] 100.0% of 1MiB ETA 00:00", ytdl_rules(), data, 1)
    update_log("[download] 5.0% ETA 00:10", ytdl_rules(), data, 1)
    assert data.to_string_list() == [
        "[download] 100.0% of 1MiB ETA 00:00",
        "[download] 5.0% ETA 00:10",
    ]


def test_skip_lines():
    data = LogData()
    update_log("keep\ndrop (pass -k to keep)\n\nalso", ytdl_rules(), data, 1)
    assert data.to_string_list() == ["keep", "also"]


def test_human_readable_json():
    data = LogData()
    update_log('{"b":1,"a":2}', ytdl_rules(), data, 4, True)
    assert len(data) == 1
    text = data[0]
    assert json.loads(text) == {"b": 1, "a": 2}
    assert text.index('"a"') < text.index('"b"')


def test_invalid_json_falls_back_to_lines():
    data = LogData()
    update_log("[info] not json", ytdl_rules(), data, 1, True)
    assert data.to_string_list() == ["[info] not json"]


def test_two_separators():
    data = LogData()
    rules = OutputRules(split_lines_by=["|", ";"])
    update_log("a;b|c", rules, data, 1)
    assert data.to_string_list() == ["a", "b", "c"]


def test_default_split_by_carriage_return():
    data = LogData()
    update_log("a\rb\nc", OutputRules(), data, 1)
    assert data.to_string_list() == ["a", "b", "c"]


@pytest.mark.parametrize(
    "structure, line, expected",
    [
        ({"lhs": {"endsWith": "%"}}, "50%", True),
        ({"lhs": {"endsWith": "%"}}, "50", False),
        ({"lhs": {"containsAny": ["x", "y"]}}, "ay", True),
        ({"lhs": {"containsAny": ["x", "y"]}}, "ab", False),
        ({"lhs": {"containsAll": ["a", "b"]}}, "ab", True),
        ({"lhs": {"containsAll": ["a", "b"]}}, "a", False),
        ({"Connector": "||", "lhs": {"contains": "q"}, "rhs": {"contains": "z"}}, "z", True),
        ({"Connector": "xor", "lhs": {"contains": "z"}, "rhs": {"contains": "z"}}, "z", False),
        ({"Connector": "&&", "lhs": {"contains": "z"}}, "z", False),
        ({}, "anything", False),
        ({"lhs": {"unknown": "z"}}, "z", False),
    ],
)
def test_meets_condition(structure, line, expected):
    updater = LogUpdater(OutputRules(control_structure=structure), LogData(), 1)
    assert updater.meets_condition(line) is expected


def test_skip_line_empty():
    updater = LogUpdater(OutputRules(skip_lines_with_text=["zz"]), LogData())
    assert updater.skip_line("")
    assert updater.skip_line("azzb")
    assert not updater.skip_line("ab")


def test_logger_prefixes_lines_once():
    logger = Logger()
    logger.add("hello")
    logger.add("[UMD4] there")
    assert logger.data.to_string_list() == ["[UMD4] hello", "[UMD4] there"]


def test_logger_notifies_only_when_view_enabled():
    seen = []
    logger = Logger(seen.append)
    logger.add("one")
    assert seen == []
    logger.update_view(True)
    logger.add("two")
    assert seen[-1] == logger.text()
    assert seen[-1].endswith("[UMD4] two")


def test_logger_authentication_message():
    logger = Logger()
    logger.add("ERROR: Sign in to confirm you are not a bot")
    assert logger.text().startswith(
        "ERROR: Unable to download without authentication."
    )


def test_logger_update_hint_replaced():
    logger = Logger()
    logger.add("Confirm you are on the latest version using  yt-dlp -U")
    assert 'click "Update Engine"' in logger.text()
    assert "yt-dlp -U" not in logger.text()


def test_log_error_inserts_after_task_line():
    logger = Logger()
    logger.add("start", 5)
    logger.log_error("boom", 5)
    assert logger.data.to_string_list() == [
        "[UMD4] start",
        "[UMD4][std error] boom",
    ]


def test_add_with_gets_lines_and_id():
    logger = Logger()
    calls = []

    def edit(data, id, flag):
        calls.append((id, flag))
        data.add("raw", id)

    logger.add_with(edit, 7)
    assert calls == [(7, True)]
    assert list(logger.data.lines()) == [(7, "raw")]


def test_logger_wrapper_uses_its_id():
    logger = Logger()
    wrapper = LoggerWrapper(logger, 3)
    wrapper.add(b"bytes line")
    wrapper.add_with(lambda data, id, flag: data.add("edited", id))
    assert list(logger.data.lines()) == [(3, "[UMD4] bytes line"), (3, "edited")]
    wrapper.clear()
    assert logger.data.is_empty()


def test_logger_wrapper_log_error():
    logger = Logger()
    wrapper = LoggerWrapper(logger, 2)
    wrapper.log_error("bad")
    assert list(logger.data.lines()) == [(2, "[UMD4][std error] bad")]