import json
from decimal import Decimal

import pytest

from src.core.exceptions import NoUsableFiles, NoUsageData, SelectionCancelled
from src.services.local_logs import (
    find_jsonl_files,
    is_candidate_upload,
    parse_jsonl_text,
    parse_local_directory,
    parse_uploaded_files,
    parse_usage_line,
)


def _line(model="claude-3-opus-20240229", input_tokens=100, output_tokens=50, ts="2025-04-02T10:00:00.000Z", **usage):
    payload = {
        "type": "assistant",
        "message": {
            "model": model,
            "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens, **usage},
        },
    }
    if ts is not None:
        payload["timestamp"] = ts
    return json.dumps(payload)


def test_parse_usage_line_reads_usage_and_cache_tokens():
    record = parse_usage_line(
        _line(cache_creation_input_tokens=7, cache_read_input_tokens=3)
    )

    assert record is not None
    assert record.model == "claude-3-opus-20240229"
    assert record.effective_input_tokens == 110
    assert record.timestamp.year == 2025 and record.timestamp.month == 4


@pytest.mark.parametrize(
    "line",
    [
        "not json",
        "[]",
        json.dumps({"type": "user", "message": {"content": "hi"}}),
        json.dumps({"type": "summary"}),
    ],
)
def test_lines_without_usage_are_skipped(line):
    assert parse_usage_line(line) is None


def test_parse_jsonl_text_ignores_blank_and_malformed_lines():
    content = "\n".join([_line(), "", "{broken", _line(input_tokens=1, output_tokens=1)])

    records = parse_jsonl_text(content)

    assert [r.input_tokens for r in records] == [100, 1]


def test_missing_model_is_unknown():
    payload = {"timestamp": "2025-01-01T00:00:00Z", "message": {"usage": {"input_tokens": 5}}}

    record = parse_usage_line(json.dumps(payload))

    assert record.model == "unknown"
    assert record.output_tokens == 0


def test_find_jsonl_files_skips_ignored_dirs_and_depth(tmp_path):
    (tmp_path / "projects" / "app").mkdir(parents=True)
    (tmp_path / "projects" / "app" / "a.jsonl").write_text(_line())
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "b.jsonl").write_text(_line())
    (tmp_path / "notes.txt").write_text("ignored")
    deep = tmp_path / "d1" / "d2" / "d3"
    deep.mkdir(parents=True)
    (deep / "c.jsonl").write_text(_line())

    names = sorted(p.name for p in find_jsonl_files(tmp_path, max_depth=2))

    assert names == ["a.jsonl"]


def test_parse_local_directory_aggregates(tmp_path):
    project = tmp_path / "projects" / "demo"
    project.mkdir(parents=True)
    (project / "one.jsonl").write_text(
        "\n".join([_line(), _line(ts="2024-06-01T00:00:00Z", input_tokens=9999)])
    )
    (project / "two.jsonl").write_text(_line(model="claude-3-haiku-20240307", input_tokens=10, output_tokens=10))
    messages = []

    usage = parse_local_directory(tmp_path, 2025, on_progress=messages.append)

    assert usage.total_tokens == 170
    assert usage.data_source == "local-files"
    assert usage.data_source_label == "Claude Code (Local Files)"
    assert usage.total_cost > Decimal("0")
    assert messages[-1] == "Aggregation complete."


def test_parse_local_directory_errors(tmp_path):
    with pytest.raises(SelectionCancelled):
        parse_local_directory(tmp_path / "missing", 2025)

    with pytest.raises(NoUsableFiles):
        parse_local_directory(tmp_path, 2025)

    (tmp_path / "old.jsonl").write_text(_line(ts="2023-01-01T00:00:00Z"))
    with pytest.raises(NoUsageData) as exc_info:
        parse_local_directory(tmp_path, 2025)
    assert "2025" in exc_info.value.message


@pytest.mark.parametrize(
    "path, expected",
    [
        ("projects/app/session.jsonl", True),
        ("session.jsonl", True),
        ("projects\\app\\session.jsonl", True),
        ("node_modules/x/session.jsonl", False),
        ("statsig/session.jsonl", False),
        ("projects/app/readme.md", False),
    ],
)
def test_is_candidate_upload(path, expected):
    assert is_candidate_upload(path) is expected


def test_parse_uploaded_files():
    files = [
        ("projects/app/a.jsonl", _line().encode()),
        ("projects/app/notes.md", b"# not a log"),
        (".git/logs.jsonl", _line(input_tokens=10_000).encode()),
    ]

    usage = parse_uploaded_files(files, 2025)

    assert usage.total_tokens == 150


def test_parse_uploaded_files_errors():
    with pytest.raises(SelectionCancelled):
        parse_uploaded_files([], 2025)
    with pytest.raises(NoUsableFiles):
        parse_uploaded_files([("readme.md", b"")], 2025)


@pytest.mark.parametrize(
    "usage",
    [
        {"input_tokens": -5},
        {"output_tokens": -1},
        {"cache_read_input_tokens": -500},
        {"input_tokens": float("inf")},
    ],
)
def test_lines_with_invalid_counts_are_skipped(usage):
    assert parse_usage_line(_line(**{"input_tokens": 100, "output_tokens": 50, **usage})) is None


def test_negative_counts_do_not_corrupt_totals():
    content = "\n".join(
        [_line(input_tokens=100, output_tokens=15), _line(input_tokens=-500, output_tokens=0)]
    )

    usage = parse_uploaded_files([("p/s.jsonl", content.encode())], 2025)

    assert usage.total_tokens == 115
    assert usage.total_input_tokens == 100
