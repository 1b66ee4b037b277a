"""
Reads and writes snapshot store files.

A store file holds the accepted snapshot values for one test file and lives at
<test file directory>/.snapshots/<test file name>.snap.

Format:

    # specrun snapshot v1
    <blank line>
    key <N>
    <N bytes of UTF-8 key>
    value <M>
    <M bytes of UTF-8 value>
    <blank line>
    ...

Each key and value block is followed by a newline that is not part of the
block. Because every block is length-prefixed no escaping is needed, while the
file remains readable and diffable as text.
"""

from collections.abc import Iterable
import os
import os.path
import tempfile


SNAPSHOTS_DIRNAME = '.snapshots'
SNAPSHOT_FILE_EXTENSION = '.snap'

_HEADER = b'# specrun snapshot v1\n'


class SnapshotStoreFormatError(ValueError):
    """Raised when a store file cannot be parsed."""
    
    def __init__(self, message: str, offset: int) -> None:
        super().__init__(f'{message} (at byte {offset})')
        self.offset = offset


# ------------------------------------------------------------------------------
# Paths

def snapshot_filepath(test_filepath: str) -> str:
    return os.path.join(
        os.path.dirname(test_filepath),
        SNAPSHOTS_DIRNAME,
        os.path.basename(test_filepath) + SNAPSHOT_FILE_EXTENSION)


# ------------------------------------------------------------------------------
# Files

def read_store(store_filepath: str) -> dict[str, str] | None:
    """
    Reads the store at the specified path.

    Returns None if no store exists, which callers must distinguish
    from a store that exists but is empty.

    Raises:
    * SnapshotStoreFormatError
    * OSError
    """
    try:
        with open(store_filepath, 'rb') as f:
            data = f.read()
    except FileNotFoundError:
        return None
    return parse_store(data)


def write_store(store_filepath: str, entries: Iterable[tuple[str, str]]) -> None:
    """
    Replaces the store at the specified path with exactly `entries`,
    creating its parent directory if necessary.

    Raises:
    * OSError
    * UnicodeEncodeError -- if a key or value contains a lone surrogate.
    """
    data = format_store(entries)
    
    parent_dirpath = os.path.dirname(store_filepath) or '.'
    os.makedirs(parent_dirpath, exist_ok=True)
    
    # Readers never observe a partially written store
    (fd, temp_filepath) = tempfile.mkstemp(
        prefix='.', suffix=SNAPSHOT_FILE_EXTENSION, dir=parent_dirpath)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(temp_filepath, store_filepath)
    except BaseException:
        os.remove(temp_filepath)
        raise


def delete_store(store_filepath: str) -> None:
    """
    Raises:
    * OSError
    """
    os.remove(store_filepath)


# ------------------------------------------------------------------------------
# Format

def format_store(entries: Iterable[tuple[str, str]]) -> bytes:
    parts = [_HEADER, b'\n']
    for (key, value) in entries:
        parts.extend(_format_block(b'key', key))
        parts.extend(_format_block(b'value', value))
        parts.append(b'\n')
    return b''.join(parts)


def _format_block(label: bytes, text: str) -> list[bytes]:
    text_bytes = text.encode('utf-8')
    return [label, b' %d\n' % len(text_bytes), text_bytes, b'\n']


def parse_store(data: bytes) -> dict[str, str]:
    """
    Raises:
    * SnapshotStoreFormatError
    """
    if not data.startswith(_HEADER):
        raise SnapshotStoreFormatError('Missing snapshot file header', 0)
    pos = len(_HEADER)
    pos = _expect_newline(data, pos)
    
    entries = {}  # type: dict[str, str]
    while pos < len(data):
        record_offset = pos
        (key, pos) = _parse_block(data, pos, b'key')
        (value, pos) = _parse_block(data, pos, b'value')
        pos = _expect_newline(data, pos)
        if key in entries:
            raise SnapshotStoreFormatError(f'Duplicate snapshot key {key!r}', record_offset)
        entries[key] = value
    return entries


def _parse_block(data: bytes, pos: int, label: bytes) -> tuple[str, int]:
    eol = data.find(b'\n', pos)
    if eol == -1:
        raise SnapshotStoreFormatError(
            f'Expected {label.decode("ascii")!r} line but found end of file', pos)
    header_parts = data[pos:eol].split(b' ')
    if (len(header_parts) != 2 or
            header_parts[0] != label or
            not header_parts[1].isdigit()):
        raise SnapshotStoreFormatError(
            f'Expected {label.decode("ascii")!r} line but found {data[pos:eol]!r}', pos)
    length = int(header_parts[1])
    
    start = eol + 1
    end = start + length
    if end > len(data):
        raise SnapshotStoreFormatError(
            f'{label.decode("ascii").capitalize()} is truncated', start)
    try:
        text = data[start:end].decode('utf-8')
    except UnicodeDecodeError as e:
        raise SnapshotStoreFormatError(
            f'{label.decode("ascii").capitalize()} is not valid UTF-8', start) from e
    
    # Strip the newline that always follows a block
    return (text, _expect_newline(data, end))


def _expect_newline(data: bytes, pos: int) -> int:
    if data[pos:pos+1] != b'\n':
        raise SnapshotStoreFormatError('Expected newline', pos)
    return pos + 1


# ------------------------------------------------------------------------------
