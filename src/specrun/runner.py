"""
Runs a single test file, reports its results, and decides its exit code.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum, IntEnum
import os.path
from specrun.dsl import SpecDsl
from specrun.executor import execute_unit, RunContext
from specrun.results import (
    HEADER, Outcome, print_results, report_outcome, ResultSet, TestRecord,
)
from specrun.snapshots import SnapshotMode
from specrun.util import cli
import sys
import traceback
from types import CodeType, ModuleType


# Name of the module a test file runs as
_TEST_MODULE_NAME = '__specrun_test__'


class ExitCode(IntEnum):
    OK = 0
    FAILURES = 1
    ERRORS = 2
    # The test file could not be loaded or declared no tests
    NOT_RUN = 3


class RunStatus(Enum):
    COMPLETED = 'completed'
    LOAD_ERROR = 'load_error'
    NO_TESTS = 'no_tests'


@dataclass(frozen=True)
class RunReport:
    filepath: str
    status: RunStatus
    # None unless status is COMPLETED
    results: ResultSet | None = None
    # None unless status is LOAD_ERROR
    load_error: str | None = None
    
    @property
    def exit_code(self) -> ExitCode:
        if self.status != RunStatus.COMPLETED:
            return ExitCode.NOT_RUN
        assert self.results is not None
        if len(self.results.errors) > 0:
            return ExitCode.ERRORS
        elif len(self.results.failed) > 0:
            return ExitCode.FAILURES
        else:
            return ExitCode.OK


class TestFileLoadError(Exception):
    """Raised when a test file cannot be read or compiled."""
    __test__ = False  # not a pytest test class


# ------------------------------------------------------------------------------
# Run

def run(filepath: str) -> RunReport:
    """
    Runs the test file at the specified path with fresh run state,
    printing results as they happen and a summary at the end.

    Snapshots are recorded rather than verified if the environment variable
    SPECRUN_UPDATE_SNAPSHOTS=1 is set when the run starts.
    """
    filepath = filepath.replace('\\', '/')  # reinterpret
    context = RunContext(filepath, snapshot_mode=SnapshotMode.from_environment())
    try:
        return _run(context)
    finally:
        context.close()


def _run(context: RunContext) -> RunReport:
    filepath = context.test_filepath  # cache
    
    print()
    print(HEADER)
    print(f'Testing: {filepath}')
    
    try:
        code = load_test_file(filepath)
    except TestFileLoadError as e:
        print(HEADER)
        print('FAILED TO LOAD FILE')
        cli.print_error(str(e))
        print(HEADER)
        return RunReport(filepath, RunStatus.LOAD_ERROR, load_error=str(e))
    
    module = _create_test_module(filepath, SpecDsl(context))
    with _test_module_installed(module), \
            _dirpath_on_sys_path(os.path.dirname(os.path.abspath(filepath))):
        execute_unit(context, lambda: exec(code, module.__dict__))
    
    results = context.results  # cache
    if results is None:
        # Nothing ran, such as for an empty file without a top-level describe()
        cli.print_warning(f'No tests were declared in {filepath}')
        return RunReport(filepath, RunStatus.NO_TESTS)
    
    if context.snapshots.mode == SnapshotMode.UPDATE:
        try:
            results.snapshots = context.snapshots.flush()
        except (OSError, UnicodeError) as e:
            record = TestRecord(
                (os.path.basename(filepath),),
                Outcome.ERROR,
                f'Could not save snapshots to {context.snapshots.store_filepath}: {e}',
            )
            results.record(record)
            report_outcome(record)
    
    print_results(results.summarize())
    
    if len(results.errors) > 0:
        print('We had an unexpected error:')
        for error in results.errors:
            print(cli.indent(error.path_str, 4))
            if error.message is not None:
                print(cli.indent(error.message, 8))
    elif len(results.failed) > 0:
        print(f'Tests Failed. Exit: {int(ExitCode.FAILURES)}')
    
    return RunReport(filepath, RunStatus.COMPLETED, results)


# ------------------------------------------------------------------------------
# Load

def load_test_file(filepath: str) -> CodeType:
    """
    Reads and compiles a test file without running any of it.

    Raises:
    * TestFileLoadError
    """
    try:
        # Read as bytes so that compile() honors any source encoding declaration
        with open(filepath, 'rb') as f:
            source = f.read()
    except OSError as e:
        raise TestFileLoadError(f'{filepath}: {e.strerror or e}') from e
    try:
        return compile(source, filepath, 'exec', dont_inherit=True)
    except (SyntaxError, ValueError) as e:
        raise TestFileLoadError(
            ''.join(traceback.format_exception_only(e)).rstrip('\n')) from e


def _create_test_module(filepath: str, dsl: SpecDsl) -> ModuleType:
    module = ModuleType(_TEST_MODULE_NAME)
    module.__file__ = filepath
    module.__dict__.update(dsl.namespace())
    return module


@contextmanager
def _test_module_installed(module: ModuleType) -> Iterator[None]:
    # Some libraries (like dataclasses) look up a class's module in sys.modules
    old_module = sys.modules.get(module.__name__)
    sys.modules[module.__name__] = module
    try:
        yield
    finally:
        if old_module is None:
            sys.modules.pop(module.__name__, None)
        else:
            sys.modules[module.__name__] = old_module


@contextmanager
def _dirpath_on_sys_path(dirpath: str) -> Iterator[None]:
    """
    Context in which modules beside the test file can be imported.
    """
    sys.path.insert(0, dirpath)
    try:
        yield
    finally:
        try:
            sys.path.remove(dirpath)
        except ValueError:
            # Test file removed the entry itself
            pass


# ------------------------------------------------------------------------------
