"""
Unit tests for the Result type.
"""

from __future__ import annotations

import pytest

from sectigo_gateway.domain.result import ErrorCode, Failure, Result, Success
from tests.assertions import ResultAssertions


class TestConstruction:
    def test_success_rejects_none(self) -> None:
        with pytest.raises(TypeError):
            Result.success(None)

    def test_failure_str(self) -> None:
        result = Result.failure(ErrorCode.NOT_FOUND, "gone")
        assert str(result.error()) == "NOT_FOUND: gone"

    def test_value_of_failure_raises(self) -> None:
        with pytest.raises(ValueError):
            Result.failure(ErrorCode.NOT_FOUND, "gone").value()

    def test_equality(self) -> None:
        assert Result.success(1) == Success(1)
        assert Result.failure(ErrorCode.NOT_FOUND, "x") == Result.failure(ErrorCode.NOT_FOUND, "x")

    def test_pattern_matching(self) -> None:
        match Result.success(7):
            case Success(value):
                assert value == 7
            case Failure(_):
                pytest.fail("expected success")


class TestTransformations:
    def test_map_and_flat_map_on_success(self) -> None:
        result = Result.success(2).map(lambda x: x * 21).flat_map(lambda x: Result.success(x + 1))
        assert ResultAssertions.assert_success(result) == 43

    def test_failure_short_circuits(self) -> None:
        called = []
        result = Result.failure(ErrorCode.VALIDATION_ERROR, "bad").map(called.append)
        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        assert called == []

    def test_get_or_else(self) -> None:
        assert Result.failure(ErrorCode.NOT_FOUND, "x").get_or_else(5) == 5

    def test_peek_failure_runs_side_effect(self) -> None:
        seen = []
        Result.failure(ErrorCode.NOT_FOUND, "x").peek_failure(seen.append)
        assert len(seen) == 1


class TestFactories:
    def test_from_computation_captures_exception(self) -> None:
        """
        GIVEN a computation that raises
        WHEN wrapped by from_computation
        THEN the failure message carries the prefix and the exception text.
        """
        result = Result.from_computation(
            lambda: int("abc"), ErrorCode.INVALID_RESPONSE, "Could not decode"
        )
        error = ResultAssertions.assert_failure(result, ErrorCode.INVALID_RESPONSE)
        assert error.message.startswith("Could not decode: ")
        assert isinstance(error.exception, ValueError)

    def test_from_computation_returning_none_is_failure(self) -> None:
        result = Result.from_computation(lambda: None, ErrorCode.INVALID_RESPONSE, "empty")
        ResultAssertions.assert_failure(result, ErrorCode.INVALID_RESPONSE)

    def test_from_optional(self) -> None:
        assert Result.from_optional(3, "missing").value() == 3
        ResultAssertions.assert_failure(
            Result.from_optional(None, "missing"), ErrorCode.VALIDATION_ERROR
        )
