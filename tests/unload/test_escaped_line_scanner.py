import io

import pytest

from nzunload.domain.unload.scanner import EscapedLineScanner, ScanState


class OneByteSource:
    def __init__(self, data: bytes) -> None:
        self._buf = io.BytesIO(data)

    def read(self, size: int = -1) -> bytes:
        return self._buf.read(1)


def read_all(source, chunk_size: int = 4096) -> list[bytes]:
    scanner = EscapedLineScanner(source, chunk_size=chunk_size)
    state = ScanState()
    records = []
    while True:
        record = scanner.read_record(state)
        if record is None:
            return records
        records.append(record)


def test_splits_on_lf_cr_and_crlf():
    data = b"a\nb\rc\r\nd"
    assert read_all(io.BytesIO(data)) == [b"a", b"b", b"c", b"d"]


def test_crlf_is_not_split_into_two_records():
    data = b"one\r\ntwo\r\nthree\r\n"
    assert read_all(io.BytesIO(data)) == [b"one", b"two", b"three"]


def test_crlf_split_across_reads_is_one_terminator():
    assert read_all(io.BytesIO(b"a\r\nb"), chunk_size=2) == [b"a", b"b"]


def test_delimited_record_example():
    data = b"a\x01b\r\nc\x01d"
    assert read_all(io.BytesIO(data)) == [b"a\x01b", b"c\x01d"]


def test_lf_after_escaped_cr_ends_record():
    data = b"1\x01a\\\r\n2\x01b\n"
    assert read_all(io.BytesIO(data)) == [b"1\x01a\\\r", b"2\x01b"]


def test_escaped_cr_and_escaped_lf_are_data():
    data = b"a\\\r\\\nb"
    assert read_all(io.BytesIO(data)) == [b"a\\\r\\\nb"]


@pytest.mark.parametrize("newline", [b"\r", b"\n"])
def test_escaped_single_newline_is_data(newline):
    data = b"x\\" + newline + b"y\nz"
    assert read_all(io.BytesIO(data)) == [b"x\\" + newline + b"y", b"z"]


def test_escaped_escape_before_crlf_ends_record():
    data = b"a\\\\\r\nb"
    assert read_all(io.BytesIO(data)) == [b"a\\\\", b"b"]


def test_triple_escape_escapes_newline():
    data = b"a\\\\\\\nb\n"
    assert read_all(io.BytesIO(data)) == [b"a\\\\\\\nb"]


def test_escaped_delimiter_is_kept_for_field_parser():
    data = b"a\\\x01b\x01c\n"
    assert read_all(io.BytesIO(data)) == [b"a\\\x01b\x01c"]


def test_trailing_newline_does_not_produce_extra_record():
    assert read_all(io.BytesIO(b"a\nb\n")) == [b"a", b"b"]


def test_empty_source_is_exhausted():
    assert read_all(io.BytesIO(b"")) == []


def test_blank_line_in_the_middle_is_an_empty_record():
    assert read_all(io.BytesIO(b"a\n\nb\n")) == [b"a", b"", b"b"]


def test_unterminated_last_record_is_returned_and_flagged():
    scanner = EscapedLineScanner(io.BytesIO(b"a\nbc"))
    state = ScanState()

    assert scanner.read_record(state) == b"a"
    assert state.terminated is True
    assert scanner.read_record(state) == b"bc"
    assert state.terminated is False
    assert state.eof is True
    assert scanner.read_record(state) is None


@pytest.mark.parametrize(
    "data",
    [
        b"a\x01b\r\nc\x01d",
        b"a\\\r\nb\r\nc\\\\\r\nd\re\n\n",
        b"\r\n\r\nx\\\ry\\\\\n\\\\\\\r\n",
    ],
)
def test_single_byte_and_batched_reads_agree(data):
    batched = read_all(io.BytesIO(data), chunk_size=4096)
    single = read_all(OneByteSource(data))
    for size in (1, 2, 3, 5):
        assert read_all(io.BytesIO(data), chunk_size=size) == batched
    assert single == batched


def test_state_is_owned_per_scan():
    source = io.BytesIO(b"a\r\nb\n")
    scanner = EscapedLineScanner(source)
    state = ScanState()
    assert scanner.read_record(state) == b"a"
    assert state.skip_lf is True
    assert scanner.read_record(state) == b"b"
    assert state.skip_lf is False


def test_rejects_multibyte_escape():
    with pytest.raises(ValueError):
        EscapedLineScanner(io.BytesIO(b""), escape=b"\\\\")
