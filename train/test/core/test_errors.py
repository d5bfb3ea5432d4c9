"""Tests for train.core.errors module."""

from train.core.errors import ErrorCode


def test_codes_are_stable() -> None:
    assert int(ErrorCode.OK) == 0
    assert int(ErrorCode.USER_ERROR) == 1
    assert int(ErrorCode.ENV_ERROR) == 2
    assert int(ErrorCode.BUILD_ERROR) == 3
    assert int(ErrorCode.NETWORK_ERROR) == 4
    assert int(ErrorCode.IO_ERROR) == 5
    assert int(ErrorCode.PIPELINE_ERROR) == 6
