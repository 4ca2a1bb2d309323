"""
Tests for incremental base64 decoding.
"""

import base64

import pytest

from clinicfiles.application.storage.base64_stream import (
    Base64ChunkStream,
    aligned_window,
    estimate_decoded_size,
)
from clinicfiles.core.exceptions import DecodeError


def test_aligned_window_is_multiple_of_four():
    assert aligned_window(255 * 1024) == 348160
    assert aligned_window(255 * 1024) % 4 == 0
    assert aligned_window(7) == 8


def test_aligned_window_rejects_tiny_chunks():
    with pytest.raises(ValueError):
        aligned_window(2)


def test_estimate_decoded_size():
    assert estimate_decoded_size(0) == 0
    assert estimate_decoded_size(4) == 3
    assert estimate_decoded_size(8 * 1024 * 1024) == 6 * 1024 * 1024


def test_chunks_have_fixed_size_and_concatenate_to_original():
    data = bytes(range(256)) * 40  # 10240 bytes
    encoded = base64.b64encode(data).decode("ascii")

    stream = Base64ChunkStream(encoded, chunk_size=3000)
    chunks = list(stream)

    assert b"".join(chunks) == data
    assert all(len(chunk) == 3000 for chunk in chunks[:-1])
    assert len(chunks[-1]) == 10240 - 3 * 3000
    assert stream.bytes_decoded == len(data)
    assert stream.exhausted


def test_chunk_size_rounds_down_to_multiple_of_three():
    data = b"x" * 100
    chunks = list(Base64ChunkStream(base64.b64encode(data), chunk_size=10))
    assert [len(c) for c in chunks[:-1]] == [9] * (len(chunks) - 1)
    assert b"".join(chunks) == data


@pytest.mark.parametrize("data", [b"A", b"AB", b"ABC", b"ABCD", b"hello world!"])
def test_padded_and_unpadded_input_decode_identically(data):
    padded = base64.b64encode(data).decode("ascii")
    unpadded = padded.rstrip("=")

    assert Base64ChunkStream(padded, 6).read_all() == data
    assert Base64ChunkStream(unpadded, 6).read_all() == data


def test_empty_input_yields_nothing():
    stream = Base64ChunkStream("", 6)
    assert list(stream) == []
    assert stream.exhausted


def test_surrounding_whitespace_is_ignored():
    assert Base64ChunkStream("  QUJD\n", 6).read_all() == b"ABC"


def test_invalid_character_raises_decode_error_and_exhausts_stream():
    stream = Base64ChunkStream("QUJD" + "QU*D", 3)

    assert next(stream) == b"ABC"
    with pytest.raises(DecodeError) as exc_info:
        next(stream)

    assert exc_info.value.error_code == "DECODE_ERROR"
    assert exc_info.value.details["offset"] == 4
    assert stream.exhausted
    assert list(stream) == []


def test_padding_closing_a_non_final_window_is_rejected():
    stream = Base64ChunkStream("AAAAAB==" + "Q0NDQ0ND", 6)

    with pytest.raises(DecodeError) as exc_info:
        next(stream)

    assert exc_info.value.details["offset"] == 0
    assert stream.exhausted
    assert stream.bytes_decoded == 0


def test_padding_at_window_boundary_fails_after_earlier_windows():
    stream = Base64ChunkStream("AAAA" + "AB==" + "Q0ND", 3)

    assert next(stream) == b"\x00\x00\x00"
    with pytest.raises(DecodeError) as exc_info:
        next(stream)

    assert exc_info.value.details["offset"] == 4
    assert list(stream) == []


@pytest.mark.parametrize(
    "encoded",
    [
        "QQ==QUJD",  # padding in the middle of a single window
        "QUJDQQ=A",  # padding followed by data
        "QUJDQQ==QUJD",  # padded quantum before the last window
    ],
)
def test_misplaced_padding_is_rejected(encoded):
    with pytest.raises(DecodeError):
        Base64ChunkStream(encoded, 6).read_all()


@pytest.mark.parametrize("encoded", ["QQ=", "QUJDQQ="])
def test_padded_last_window_must_be_whole_quantum(encoded):
    with pytest.raises(DecodeError):
        Base64ChunkStream(encoded, 3).read_all()


def test_single_trailing_character_is_rejected():
    with pytest.raises(DecodeError):
        Base64ChunkStream("QUJDQ", 6).read_all()


def test_non_ascii_input_is_rejected():
    with pytest.raises(DecodeError):
        Base64ChunkStream("QUJé", 6)


def test_properties_report_encoded_and_estimated_sizes():
    stream = Base64ChunkStream("QUJDREVG", 6)
    assert stream.encoded_length == 8
    assert stream.estimated_size == 6
    assert stream.bytes_decoded == 0
