"""
Unit tests for specrun.snapshot_store.
"""

import os.path
import pytest
from specrun.snapshot_store import (
    format_store, parse_store, read_store, snapshot_filepath,
    SnapshotStoreFormatError, write_store,
)
import tempfile


# ------------------------------------------------------------------------------
# TestSnapshotFilepath

class TestSnapshotFilepath:
    def test_store_lives_in_snapshots_directory_beside_test_file(self) -> None:
        assert (
            snapshot_filepath('/project/tests/test_math.py') ==
            os.path.join('/project/tests', '.snapshots', 'test_math.py.snap')
        )
    
    def test_relative_test_filepath_gives_relative_store_filepath(self) -> None:
        assert (
            snapshot_filepath('test_math.py') ==
            os.path.join('', '.snapshots', 'test_math.py.snap')
        )


# ------------------------------------------------------------------------------
# TestFormat

class TestFormat:
    def test_format_of_empty_store_is_just_header(self) -> None:
        assert format_store([]) == b'# specrun snapshot v1\n\n'
    
    def test_format_prefixes_each_block_with_its_byte_length(self) -> None:
        data = format_store([('math 0 >> adds 1', "'Success  : 1'")])
        assert data == (
            b'# specrun snapshot v1\n'
            b'\n'
            b'key 16\n'
            b'math 0 >> adds 1\n'
            b'value 14\n'
            b"'Success  : 1'\n"
            b'\n'
        )
    
    def test_length_counts_utf8_bytes_rather_than_characters(self) -> None:
        data = format_store([('café', 'x')])
        assert b'key 5\ncaf\xc3\xa9\n' in data
    
    def test_values_that_look_like_format_syntax_survive_unescaped(self) -> None:
        entries = [
            ('suite 0 >> spec 1', 'line one\n\nvalue 99\nkey 3\n# specrun snapshot v1\n'),
            ('suite 0 >> spec 2', ''),
            ('multi\nline key', ']===] "quoted" \\ backslash'),
        ]
        assert parse_store(format_store(entries)) == dict(entries)
    
    def test_records_keep_their_order(self) -> None:
        entries = [('b 1', '1'), ('a 1', '2'), ('c 1', '3')]
        assert list(parse_store(format_store(entries)).keys()) == ['b 1', 'a 1', 'c 1']


# ------------------------------------------------------------------------------
# TestParseMalformed

class TestParseMalformed:
    @pytest.mark.parametrize('data', [
        b'',
        b'key 1\na\nvalue 1\nb\n\n',
        b'# some other format\n\n',
    ])
    def test_missing_header_is_rejected(self, data: bytes) -> None:
        with pytest.raises(SnapshotStoreFormatError, match='header'):
            parse_store(data)
    
    def test_truncated_value_is_rejected(self) -> None:
        data = b'# specrun snapshot v1\n\nkey 1\na\nvalue 10\nabc'
        with pytest.raises(SnapshotStoreFormatError, match='truncated'):
            parse_store(data)
    
    def test_non_numeric_length_is_rejected(self) -> None:
        data = b'# specrun snapshot v1\n\nkey one\na\nvalue 1\nb\n\n'
        with pytest.raises(SnapshotStoreFormatError, match="Expected 'key' line"):
            parse_store(data)
    
    def test_value_without_trailing_newline_is_rejected(self) -> None:
        data = b'# specrun snapshot v1\n\nkey 1\na\nvalue 1\nbc\n\n'
        with pytest.raises(SnapshotStoreFormatError, match='Expected newline'):
            parse_store(data)
    
    def test_missing_value_block_is_rejected(self) -> None:
        data = b'# specrun snapshot v1\n\nkey 1\na\n'
        with pytest.raises(SnapshotStoreFormatError, match="Expected 'value' line"):
            parse_store(data)
    
    def test_duplicate_key_is_rejected(self) -> None:
        data = format_store([('a 1', 'x')]) + b'key 3\na 1\nvalue 1\ny\n\n'
        with pytest.raises(SnapshotStoreFormatError, match='Duplicate'):
            parse_store(data)
    
    def test_error_reports_byte_offset(self) -> None:
        data = b'# specrun snapshot v1\n\nkey 1\na\nvalue 1\nbc\n\n'
        try:
            parse_store(data)
        except SnapshotStoreFormatError as e:
            assert e.offset == data.index(b'c\n\n')
        else:
            raise AssertionError('Expected SnapshotStoreFormatError')


# ------------------------------------------------------------------------------
# TestFiles

class TestFiles:
    def test_reading_missing_store_returns_none(self) -> None:
        with tempfile.TemporaryDirectory() as dirpath:
            assert read_store(os.path.join(dirpath, '.snapshots', 'test_x.py.snap')) is None
    
    def test_reading_empty_store_returns_empty_dict_rather_than_none(self) -> None:
        with tempfile.TemporaryDirectory() as dirpath:
            store_filepath = os.path.join(dirpath, 'test_x.py.snap')
            write_store(store_filepath, [])
            assert read_store(store_filepath) == {}
    
    def test_write_creates_missing_snapshots_directory(self) -> None:
        with tempfile.TemporaryDirectory() as dirpath:
            store_filepath = snapshot_filepath(os.path.join(dirpath, 'test_x.py'))
            write_store(store_filepath, [('a 1', "'hello'")])
            assert read_store(store_filepath) == {'a 1': "'hello'"}
    
    def test_write_replaces_all_existing_entries(self) -> None:
        with tempfile.TemporaryDirectory() as dirpath:
            store_filepath = os.path.join(dirpath, 'test_x.py.snap')
            write_store(store_filepath, [('a 1', '1'), ('b 1', '2')])
            write_store(store_filepath, [('c 1', '3')])
            assert read_store(store_filepath) == {'c 1': '3'}
    
    def test_write_leaves_no_temporary_files_behind(self) -> None:
        with tempfile.TemporaryDirectory() as dirpath:
            store_filepath = os.path.join(dirpath, 'test_x.py.snap')
            write_store(store_filepath, [('a 1', '1')])
            assert os.listdir(dirpath) == ['test_x.py.snap']
