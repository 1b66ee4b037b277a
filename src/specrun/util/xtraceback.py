"""
Formats exceptions raised by test code for display to the user,
hiding frames that belong to specrun itself.
"""

import asyncio
import io
import os
import os.path
import sysconfig
import traceback
from traceback import FrameSummary

_SPECRUN_PACKAGE_DIRPATH = os.path.dirname(
    os.path.dirname(os.path.abspath(__file__)))

_ASSERTIONS_FILEPATH = os.path.join(_SPECRUN_PACKAGE_DIRPATH, 'assertions.py')

_ASYNCIO_PACKAGE_DIRPATH = os.path.dirname(os.path.abspath(asyncio.__file__))

_PYTHON_STDLIB_DIRPATH = os.path.abspath(sysconfig.get_paths()['stdlib'])


# ------------------------------------------------------------------------------
# Frame Classification

def is_assertion_frame(fs: FrameSummary) -> bool:
    """Returns whether the frame belongs to the assertion library."""
    return os.path.abspath(fs.filename) == _ASSERTIONS_FILEPATH


def is_harness_frame(fs: FrameSummary) -> bool:
    """Returns whether the frame belongs to the specrun package."""
    return os.path.abspath(fs.filename).startswith(_SPECRUN_PACKAGE_DIRPATH + os.sep)


def is_event_loop_frame(fs: FrameSummary) -> bool:
    """Returns whether the frame belongs to the asyncio package."""
    return os.path.abspath(fs.filename).startswith(_ASYNCIO_PACKAGE_DIRPATH + os.sep)


def is_native_frame(fs: FrameSummary) -> bool:
    """
    Returns whether the frame has no Python source file behind it,
    such as '<frozen importlib._bootstrap>' or '<string>'.
    """
    return fs.filename.startswith('<') and fs.filename.endswith('>')


# ------------------------------------------------------------------------------
# Normalization

def normalized_frames(exc: BaseException) -> list[FrameSummary]:
    """
    Returns the frames of `exc`'s traceback that are useful to a test author,
    innermost first.

    Starting at the fault site and walking outward, frames belonging to the
    assertion library or the harness are skipped. The first remaining frame is
    the reported origin. The walk then continues outward until it reaches a
    harness frame or a native frame, beyond which nothing is actionable.

    Frames of the asyncio event loop that drives async bodies are treated
    like harness frames.
    """
    frames = list(reversed(traceback.extract_tb(exc.__traceback__)))
    
    start = 0
    while start < len(frames) and (
            is_assertion_frame(frames[start]) or
            is_harness_frame(frames[start]) or
            is_event_loop_frame(frames[start])):
        start += 1
    
    result = []
    for fs in frames[start:]:
        if is_native_frame(fs) or is_harness_frame(fs) or is_event_loop_frame(fs):
            break
        result.append(fs)
    return result


def fault_origin(exc: BaseException) -> FrameSummary | None:
    frames = normalized_frames(exc)
    return frames[0] if len(frames) > 0 else None


def format_fault(exc: BaseException) -> str:
    """
    Formats an exception raised by a suite body, spec body, or hook.

    Example output:
        tests/test_math.py:7: AssertionError: 1 != 2
          at tests/test_math.py:7 in _
          at tests/test_math.py:12 in check_sum
    """
    frames = normalized_frames(exc)
    
    exception_str = io.StringIO()
    if len(frames) > 0:
        origin = frames[0]
        print(f'{short_filepath(origin.filename)}:{origin.lineno}: ', end='', file=exception_str)
    print(describe_exception(exc), file=exception_str)
    for fs in frames:
        print(f'  at {short_filepath(fs.filename)}:{fs.lineno} in {fs.name}', file=exception_str)
    
    return exception_str.getvalue().rstrip('\n')


def describe_exception(exc: BaseException) -> str:
    message = str(exc)
    if len(message) == 0:
        return type(exc).__name__
    return f'{type(exc).__name__}: {message}'


def short_filepath(filepath: str) -> str:
    abs_filepath = os.path.abspath(filepath)
    cwd = os.getcwd()
    if abs_filepath.startswith(cwd + os.sep):
        return os.path.relpath(abs_filepath, start=cwd)
    elif abs_filepath.startswith(_PYTHON_STDLIB_DIRPATH + os.sep):
        return os.path.relpath(abs_filepath, start=_PYTHON_STDLIB_DIRPATH)
    else:
        return filepath


# ------------------------------------------------------------------------------
