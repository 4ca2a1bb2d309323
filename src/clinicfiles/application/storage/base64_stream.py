"""
Incremental base64 decoding.

The encoded text is consumed in windows whose length is a multiple of four
characters, so every window decodes independently and no window boundary
splits a base64 quantum. Only one decoded window is held at a time.
"""

import base64
import binascii
import logging
from typing import Iterator, NoReturn, Optional, Union

from ...core.exceptions import DecodeError

logger = logging.getLogger("clinicfiles")

BASE64_QUANTUM = 4
DECODED_QUANTUM = 3


def estimate_decoded_size(encoded_length: int) -> int:
    """Estimated decoded size of ``encoded_length`` base64 characters (len * 3 / 4)."""
    return encoded_length * DECODED_QUANTUM // BASE64_QUANTUM


def aligned_window(chunk_size: int) -> int:
    """Encoded characters per window so a window decodes to at most ``chunk_size`` bytes."""
    if chunk_size < DECODED_QUANTUM:
        raise ValueError(f"Chunk size must be at least {DECODED_QUANTUM} bytes")
    return (chunk_size // DECODED_QUANTUM) * BASE64_QUANTUM


class Base64ChunkStream:
    """Forward-only, single-pass iterator of decoded byte chunks.

    Each chunk except possibly the last is ``chunk_size`` rounded down to a
    multiple of three bytes. Unpadded input is accepted; a remainder of one
    character, characters outside the alphabet and misplaced padding raise
    DecodeError, after which the stream is exhausted.
    """

    def __init__(self, encoded: Union[str, bytes], chunk_size: int) -> None:
        if isinstance(encoded, str):
            try:
                encoded = encoded.encode("ascii")
            except UnicodeEncodeError as e:
                raise DecodeError(
                    "Base64 payload contains non-ASCII characters",
                    {"position": e.start},
                ) from e
        self._encoded = encoded.strip()
        self._window = aligned_window(chunk_size)
        self._position = 0
        self._bytes_decoded = 0

    @property
    def encoded_length(self) -> int:
        return len(self._encoded)

    @property
    def estimated_size(self) -> int:
        return estimate_decoded_size(len(self._encoded))

    @property
    def bytes_decoded(self) -> int:
        """Decoded bytes produced so far."""
        return self._bytes_decoded

    @property
    def exhausted(self) -> bool:
        return self._position >= len(self._encoded)

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        if self.exhausted:
            raise StopIteration

        start = self._position
        end = min(start + self._window, len(self._encoded))
        segment = self._encoded[start:end]
        is_last = end >= len(self._encoded)

        if not is_last:
            # Padding may only close the final quantum of the whole payload
            if b"=" in segment:
                self._fail(start, "padding before end of payload")
        else:
            remainder = len(segment) % BASE64_QUANTUM
            if remainder == 1:
                self._fail(start, "truncated base64 quantum")
            if remainder:
                if b"=" in segment:
                    self._fail(start, "incomplete padded base64 quantum")
                segment = segment + b"=" * (BASE64_QUANTUM - remainder)

        try:
            decoded = base64.b64decode(segment, validate=True)
        except (binascii.Error, ValueError) as e:
            self._fail(start, str(e), e)

        self._position = end
        self._bytes_decoded += len(decoded)
        return decoded

    def _fail(self, offset: int, reason: str, cause: Optional[Exception] = None) -> NoReturn:
        # No partial chunk is emitted for the offending window
        self._position = len(self._encoded)
        error = DecodeError(
            f"Malformed base64 payload near offset {offset}: {reason}",
            {"offset": offset},
        )
        logger.warning(f"Base64 decode failed at offset {offset}: {reason}")
        raise error from cause

    def read_all(self) -> bytes:
        """Decode everything that is left. Only meant for small payloads."""
        return b"".join(self)
