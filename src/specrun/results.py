"""
Collects the outcome of every spec and suite in a run
and reports them to the terminal.
"""

from dataclasses import dataclass
from enum import Enum
from specrun.util import cli


HEADER = '=' * 40


class Outcome(Enum):
    PASS = 'pass'
    FAIL = 'fail'
    ERROR = 'error'


@dataclass(frozen=True)
class TestRecord:
    __test__ = False  # not a pytest test class
    
    descriptions: tuple[str, ...]
    outcome: Outcome
    message: str | None = None
    # For FAIL records: 'failure' if an assertion failed, 'fault' if the spec
    # raised some other exception. Both are reported as failures.
    kind: str | None = None
    
    @property
    def path_str(self) -> str:
        return ' '.join(self.descriptions)


@dataclass(frozen=True)
class SnapshotStats:
    updated: int = 0
    removed: int = 0


@dataclass(frozen=True)
class Summary:
    passed: int
    failed: int
    errors: int
    snapshots: SnapshotStats


# ------------------------------------------------------------------------------
# ResultSet

class ResultSet:
    """
    The records of one test file run, grouped by outcome.
    Records are never changed or removed once recorded.
    """
    
    def __init__(self) -> None:
        self._passed = []  # type: list[TestRecord]
        self._failed = []  # type: list[TestRecord]
        self._errors = []  # type: list[TestRecord]
        self.snapshots = SnapshotStats()
    
    @property
    def passed(self) -> tuple[TestRecord, ...]:
        return tuple(self._passed)
    
    @property
    def failed(self) -> tuple[TestRecord, ...]:
        return tuple(self._failed)
    
    @property
    def errors(self) -> tuple[TestRecord, ...]:
        return tuple(self._errors)
    
    def record(self, record: TestRecord) -> None:
        if record.outcome == Outcome.PASS:
            self._passed.append(record)
        elif record.outcome == Outcome.FAIL:
            self._failed.append(record)
        elif record.outcome == Outcome.ERROR:
            self._errors.append(record)
        else:
            raise AssertionError(f'Unknown outcome: {record.outcome!r}')
    
    def summarize(self) -> Summary:
        return Summary(
            passed=len(self._passed),
            failed=len(self._failed),
            errors=len(self._errors),
            snapshots=self.snapshots,
        )


# ------------------------------------------------------------------------------
# Reporting

_LABEL_WIDTH = len('Pending')


def report_outcome(record: TestRecord) -> None:
    """
    Prints a record as soon as its outcome is known.
    """
    if record.outcome == Outcome.PASS:
        print(_status_line(cli.TERMINAL_FG_GREEN, 'Success', record.descriptions))
    else:
        if record.outcome == Outcome.FAIL:
            print(_status_line(cli.TERMINAL_FG_RED, 'Fail', record.descriptions))
        else:
            print(_status_line(cli.TERMINAL_FG_BOLD_RED, 'Error', record.descriptions))
        if record.message is not None:
            print(cli.indent(record.message, 12))


def report_pending(descriptions: tuple[str, ...]) -> None:
    print(_status_line(cli.TERMINAL_FG_YELLOW, 'Pending', descriptions))


def _status_line(color_code: str, label: str, descriptions: tuple[str, ...]) -> str:
    padding = ' ' * (_LABEL_WIDTH - len(label))
    return f'{cli.colorize(color_code, label)}{padding} || {" ".join(descriptions)}'


def format_results(summary: Summary) -> str:
    """
    Formats the end-of-run summary.

    Example output:
        <blank line>
        Success  : 3
        Failed   : 1
        Errors   : 0
        Snapshots: 2 updated, 1 removed
        ========================================
    """
    lines = [
        '',
        f'{cli.colorize(cli.TERMINAL_FG_GREEN, "Success  :")} {summary.passed}',
        f'{cli.colorize(cli.TERMINAL_FG_RED, "Failed   :")} {summary.failed}',
        f'{cli.colorize(cli.TERMINAL_FG_RED, "Errors   :")} {summary.errors}',
    ]
    
    snap_stats = []
    if summary.snapshots.updated > 0:
        snap_stats.append(f'{summary.snapshots.updated} updated')
    if summary.snapshots.removed > 0:
        snap_stats.append(f'{summary.snapshots.removed} removed')
    if len(snap_stats) > 0:
        lines.append(f'{cli.colorize(cli.TERMINAL_FG_BLUE, "Snapshots:")} {", ".join(snap_stats)}')
    
    lines.append(HEADER)
    return '\n'.join(lines)


def print_results(summary: Summary) -> None:
    print(format_results(summary))


# ------------------------------------------------------------------------------
