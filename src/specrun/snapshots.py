"""
Snapshot assertions.

A snapshot assertion compares the canonical serialization of a value against
the value accepted for the same call site on an earlier run. Call sites are
identified by a key derived from the current description path plus an
occurrence counter, so that the same assertion inside a loop gets a distinct
key on every iteration.

Snapshots are recorded rather than verified when the environment variable
SPECRUN_UPDATE_SNAPSHOTS=1 is set.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
import pprint
from specrun.assertions import CallState, register_assertion
from specrun.results import SnapshotStats
from specrun.snapshot_store import (
    delete_store, read_store, snapshot_filepath, SnapshotStoreFormatError,
    write_store,
)
from specrun.util import cli
from specrun.util.env import UPDATE_SNAPSHOTS_VAR, update_snapshots_requested
from typing import Any, cast, Protocol


KEY_SEGMENT_SEPARATOR = ' >> '

MISSING_SNAPSHOT_MESSAGE = (
    f"Missing snapshot! Update snapshots with '{UPDATE_SNAPSHOTS_VAR}=1'."
)

_UNSET_SNAPSHOT_PLACEHOLDER = '<snapshot unset>'


class SnapshotMode(Enum):
    VERIFY = 'verify'
    UPDATE = 'update'
    
    @classmethod
    def from_environment(cls) -> SnapshotMode:
        return cls.UPDATE if update_snapshots_requested() else cls.VERIFY


# ------------------------------------------------------------------------------
# Keys

class _CounterNode:
    __slots__ = ('count', 'children')
    
    def __init__(self) -> None:
        self.count = 0
        self.children = {}  # type: dict[str, _CounterNode]


class SnapshotKeyCounter:
    """
    Derives snapshot keys from description paths.

    Keeps one occurrence counter per distinct description path. Each call to
    next_key() increments only the counter of the full path it was given;
    the counters of its ancestor paths are rendered but left unchanged.

    Backslashes and '>' characters in descriptions are escaped with a backslash,
    so distinct paths never derive the same key.
    """
    
    def __init__(self) -> None:
        self._root = _CounterNode()
    
    def next_key(self, description: Sequence[str]) -> str:
        node = self._root
        segments = []
        for (i, desc) in enumerate(description):
            child = node.children.get(desc)
            if child is None:
                child = node.children[desc] = _CounterNode()
            node = child
            if i == len(description) - 1:
                node.count += 1
            segments.append(f'{_escape_key_segment(desc)} {node.count}')
        return KEY_SEGMENT_SEPARATOR.join(segments)


def _escape_key_segment(desc: str) -> str:
    # No segment contains an unescaped '>', so no key aliases a deeper path
    return desc.replace('\\', '\\\\').replace('>', '\\>')


# ------------------------------------------------------------------------------
# Serialization

class SnapshotSerializationError(TypeError):
    """Raised when a value cannot be canonically serialized into a snapshot."""


_SCALAR_TYPES = (type(None), bool, int, float, str)


def serialize_snapshot_value(value: object) -> str:
    """
    Returns the canonical textual form of a value.

    Equal values always serialize identically, regardless of dict insertion order.

    Raises:
    * SnapshotSerializationError -- if value is not None, bool, int, float, str,
      or a dict, list, or tuple composed of such values.
    """
    _check_representable(value, set())
    return pprint.pformat(value, width=80, sort_dicts=True)


def _check_representable(value: object, containers_being_checked: set[int]) -> None:
    value_type = type(value)
    if value_type in _SCALAR_TYPES:
        return
    if value_type not in (dict, list, tuple):
        raise SnapshotSerializationError(
            f'Cannot create snapshot for value of type {value_type.__name__!r}!')
    
    if id(value) in containers_being_checked:
        raise SnapshotSerializationError(
            f'Cannot create snapshot for recursive {value_type.__name__!r}!')
    containers_being_checked.add(id(value))
    try:
        if isinstance(value, dict):
            for (k, v) in value.items():
                if type(k) not in _SCALAR_TYPES:
                    raise SnapshotSerializationError(
                        f'Cannot create snapshot for dict with key of type {type(k).__name__!r}!')
                _check_representable(v, containers_being_checked)
        else:
            for item in cast(Sequence[object], value):
                _check_representable(item, containers_being_checked)
    finally:
        containers_being_checked.remove(id(value))


# ------------------------------------------------------------------------------
# Session

@dataclass(frozen=True)
class PendingSnapshot:
    key: str
    value: str


@dataclass(frozen=True)
class LoadedStore:
    entries: dict[str, str]
    # Whether a store file existed at all,
    # as opposed to existing but being empty
    existed: bool


def load_store(test_filepath: str) -> LoadedStore:
    """
    Loads the snapshot store for a test file.

    A missing store loads as an empty store with existed=False.

    Raises:
    * SnapshotStoreFormatError
    * OSError
    """
    entries = read_store(snapshot_filepath(test_filepath))
    if entries is None:
        return LoadedStore({}, existed=False)
    return LoadedStore(entries, existed=True)


@dataclass(frozen=True)
class SnapshotCheck:
    actual: str
    # None if verifying and no snapshot was stored for the call site
    expected: str | None
    matched: bool


class SnapshotSession:
    """
    Snapshot state for one run of one test file.
    """
    
    def __init__(self, test_filepath: str, mode: SnapshotMode) -> None:
        self.test_filepath = test_filepath
        self.mode = mode
        self.pending = []  # type: list[PendingSnapshot]
        self._counter = SnapshotKeyCounter()
        self._store = None  # type: LoadedStore | None
    
    @property
    def store_filepath(self) -> str:
        return snapshot_filepath(self.test_filepath)
    
    def compute_key(self, description: Sequence[str]) -> str:
        """
        Derives the key for a snapshot assertion happening right now.

        Must be called exactly once per assertion, at the point of assertion,
        because it advances the occurrence counter for `description`.
        """
        return self._counter.next_key(description)
    
    def check(self, value: object, description: Sequence[str]) -> SnapshotCheck:
        """
        Records (in update mode) or verifies (in verify mode) a snapshot of `value`.

        Raises:
        * SnapshotSerializationError
        * SnapshotStoreFormatError -- if verifying and the store is malformed.
        * OSError -- if verifying and the store cannot be read.
        """
        actual = serialize_snapshot_value(value)
        key = self.compute_key(description)
        
        if self.mode == SnapshotMode.UPDATE:
            self.pending.append(PendingSnapshot(key, actual))
            return SnapshotCheck(actual, actual, matched=True)
        else:
            if self._store is None:
                self._store = load_store(self.test_filepath)
            expected = self._store.entries.get(key)
            return SnapshotCheck(actual, expected, matched=(expected == actual))
    
    def flush(self) -> SnapshotStats:
        """
        Replaces the stored snapshots with the ones recorded during this run.

        The store is rewritten only if some value changed or some stored key
        was not exercised. If nothing was recorded, any existing store is deleted.

        Raises:
        * OSError
        * UnicodeEncodeError -- if a key or value contains a lone surrogate.
        """
        if self.mode != SnapshotMode.UPDATE:
            raise ValueError('Can only flush snapshots recorded in update mode')
        
        try:
            old_store = load_store(self.test_filepath)
        except SnapshotStoreFormatError as e:
            cli.print_warning(
                f'WARNING: Replacing malformed snapshot file {self.store_filepath}: {e}')
            old_store = LoadedStore({}, existed=True)
        
        if len(self.pending) == 0:
            if old_store.existed:
                # The test file no longer makes any snapshot assertions
                delete_store(self.store_filepath)
            return SnapshotStats(updated=0, removed=len(old_store.entries))
        
        unmatched_entries = dict(old_store.entries)
        updated = 0
        for snap in self.pending:
            if old_store.entries.get(snap.key) != snap.value:
                updated += 1
            unmatched_entries.pop(snap.key, None)
        removed = len(unmatched_entries)
        
        if updated > 0 or removed > 0:
            write_store(
                self.store_filepath,
                [(snap.key, snap.value) for snap in self.pending])
        return SnapshotStats(updated=updated, removed=removed)


# ------------------------------------------------------------------------------
# Assertion: match_snapshot

class SnapshotContext(Protocol):
    snapshots: SnapshotSession
    
    def description_path(self) -> list[str]:
        ...


def _match_snapshot(state: CallState, arguments: list[Any]) -> bool:
    if state.context is None:
        raise RuntimeError(
            'match_snapshot() can only be used by a test file run by specrun')
    context = cast(SnapshotContext, state.context)
    
    check = context.snapshots.check(arguments[0], context.description_path())
    arguments[0] = check.actual
    arguments[1:] = [
        check.expected if check.expected is not None
        else _UNSET_SNAPSHOT_PLACEHOLDER
    ]
    
    if context.snapshots.mode == SnapshotMode.UPDATE:
        # Recording always succeeds
        return not state.negated
    if check.expected is None:
        state.failure_message = MISSING_SNAPSHOT_MESSAGE
        # Fail regardless of negation
        return state.negated
    return check.matched


register_assertion(
    'match_snapshot',
    _match_snapshot,
    'Expected the value to match its snapshot.\nActual:\n%s\nSnapshot:\n%s',
    'Expected the value not to match its snapshot.\nActual:\n%s\nSnapshot:\n%s',
)


# ------------------------------------------------------------------------------
