"""
Unit tests for specrun.results.
"""

from contextlib import redirect_stdout
from io import StringIO
from specrun.results import (
    format_results, Outcome, report_outcome, ResultSet, SnapshotStats,
    Summary, TestRecord,
)
from unittest.mock import patch


def test_records_are_grouped_by_outcome_in_order() -> None:
    results = ResultSet()
    results.record(TestRecord(('a', 'one'), Outcome.PASS))
    results.record(TestRecord(('a', 'two'), Outcome.FAIL, 'nope', kind='failure'))
    results.record(TestRecord(('a', 'three'), Outcome.PASS))
    results.record(TestRecord(('b',), Outcome.ERROR, 'boom'))
    
    assert [r.path_str for r in results.passed] == ['a one', 'a three']
    assert [r.path_str for r in results.failed] == ['a two']
    assert [r.path_str for r in results.errors] == ['b']
    assert results.summarize() == Summary(
        passed=2, failed=1, errors=1, snapshots=SnapshotStats())


def test_format_results_lists_counts_then_header() -> None:
    with patch('specrun.util.cli._USE_COLORS', False):
        text = format_results(Summary(3, 1, 0, SnapshotStats()))
    assert text.split('\n') == [
        '',
        'Success  : 3',
        'Failed   : 1',
        'Errors   : 0',
        '=' * 40,
    ]


def test_format_results_lists_only_nonzero_snapshot_counts() -> None:
    with patch('specrun.util.cli._USE_COLORS', False):
        both = format_results(Summary(1, 0, 0, SnapshotStats(updated=2, removed=1)))
        removed_only = format_results(Summary(1, 0, 0, SnapshotStats(removed=4)))
    assert 'Snapshots: 2 updated, 1 removed\n' in both
    assert 'Snapshots: 4 removed\n' in removed_only


def test_format_results_colorizes_labels_when_colors_enabled() -> None:
    with patch('specrun.util.cli._USE_COLORS', True):
        text = format_results(Summary(1, 0, 0, SnapshotStats()))
    assert '\033[0;32mSuccess  :\033[0m 1' in text


def test_failure_message_is_indented_below_status_line() -> None:
    with patch('specrun.util.cli._USE_COLORS', False), \
            redirect_stdout(StringIO()) as output:
        report_outcome(TestRecord(('math', 'adds'), Outcome.FAIL, 'line 1\nline 2'))
    assert output.getvalue() == (
        'Fail    || math adds\n' +
        ' ' * 12 + 'line 1\n' +
        ' ' * 12 + 'line 2\n'
    )
