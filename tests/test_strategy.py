"""
Tests for inline vs chunked storage selection.
"""

import pytest

from clinicfiles.application.storage.strategy import StorageStrategySelector
from clinicfiles.core.config import MIB, FileStorageSettings
from clinicfiles.core.exceptions import (
    SizeExceededError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from clinicfiles.domain.enums.storage import SourceEncoding, StorageMode


@pytest.fixture
def selector():
    return StorageStrategySelector.from_settings(FileStorageSettings())


def test_binary_threshold_boundary(selector):
    assert selector.decide(MIB, SourceEncoding.BINARY) is StorageMode.INLINE
    assert selector.decide(MIB + 1, SourceEncoding.BINARY) is StorageMode.CHUNKED
    assert selector.decide(0, SourceEncoding.BINARY) is StorageMode.INLINE


def test_base64_threshold_boundary(selector):
    assert selector.decide(10 * MIB, SourceEncoding.BASE64) is StorageMode.INLINE
    assert selector.decide(10 * MIB + 1, SourceEncoding.BASE64) is StorageMode.CHUNKED


def test_decide_accepts_plain_string_encoding(selector):
    assert selector.decide(10, "base64") is StorageMode.INLINE


def test_negative_size_is_rejected(selector):
    with pytest.raises(ValueError):
        selector.decide(-1, SourceEncoding.BINARY)


def test_plan_estimates_decoded_size_for_base64(selector):
    # 16 MiB of base64 text decodes to roughly 12 MiB
    plan = selector.plan("application/pdf", 16 * MIB, SourceEncoding.BASE64)
    assert plan.estimated_size == 12 * MIB
    assert plan.mode is StorageMode.CHUNKED
    assert plan.source_encoding is SourceEncoding.BASE64


def test_plan_normalizes_content_type(selector):
    plan = selector.plan("Image/PNG; charset=binary", 10, SourceEncoding.BINARY)
    assert plan.content_type == "image/png"
    assert plan.mode is StorageMode.INLINE


@pytest.mark.parametrize("content_type", ["text/plain", "application/octet-stream", ""])
def test_plan_rejects_disallowed_content_types(selector, content_type):
    with pytest.raises(UnsupportedMediaTypeError) as exc_info:
        selector.plan(content_type, 10, SourceEncoding.BINARY)
    assert exc_info.value.error_code == "UNSUPPORTED_MEDIA_TYPE"
    assert isinstance(exc_info.value, ValidationError)


def test_content_type_is_checked_before_size(selector):
    with pytest.raises(UnsupportedMediaTypeError):
        selector.plan("text/plain", 500 * MIB, SourceEncoding.BINARY)


def test_plan_enforces_hard_maximum(selector):
    with pytest.raises(SizeExceededError) as exc_info:
        selector.plan("application/pdf", 100 * MIB + 1, SourceEncoding.BINARY)
    assert exc_info.value.details == {"size": 100 * MIB + 1, "limit": 100 * MIB}


def test_custom_thresholds():
    selector = StorageStrategySelector(
        inline_threshold_bytes=100,
        base64_inline_threshold_bytes=50,
        max_upload_bytes=1000,
        allowed_content_types=["Application/PDF"],
    )
    assert selector.threshold_for(SourceEncoding.BINARY) == 100
    assert selector.threshold_for(SourceEncoding.BASE64) == 50
    assert selector.plan("application/pdf", 80, SourceEncoding.BASE64).mode is StorageMode.CHUNKED
    assert selector.plan("application/pdf", 80, SourceEncoding.BINARY).mode is StorageMode.INLINE
