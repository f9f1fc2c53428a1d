"""Unit tests for ring normalization and PolygonValidator."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from regionmap.errors import InvalidCoordinatesError, InvalidPolygonError
from regionmap.geometry import (
    MIN_CLOSED_RING_POINTS,
    PolygonValidator,
    is_closed,
    normalize_ring,
)

coords = st.tuples(
    st.floats(min_value=-180, max_value=180, allow_nan=False),
    st.floats(min_value=-90, max_value=90, allow_nan=False),
)


class TestNormalizeRing:
    """Tests for normalize_ring()."""

    def test_closes_open_ring(self) -> None:
        assert normalize_ring([(0, 0), (1, 0), (1, 1)]) == [
            (0, 0),
            (1, 0),
            (1, 1),
            (0, 0),
        ]

    def test_closed_ring_unchanged(self) -> None:
        ring = [(0, 0), (1, 0), (1, 1), (0, 0)]
        assert normalize_ring(ring) == ring

    def test_empty_ring_unchanged(self) -> None:
        assert normalize_ring([]) == []

    def test_does_not_mutate_input(self) -> None:
        ring = [(0, 0), (1, 0), (1, 1)]
        normalize_ring(ring)
        assert ring == [(0, 0), (1, 0), (1, 1)]

    def test_near_equal_endpoints_are_not_merged(self) -> None:
        """Closure uses exact equality, no tolerance."""
        ring = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1e-15)]
        assert len(normalize_ring(ring)) == 5

    @given(st.lists(coords, min_size=1, max_size=20))
    def test_result_is_always_closed(self, ring: list[tuple[float, float]]) -> None:
        result = normalize_ring(ring)
        assert result[0] == result[-1]
        assert is_closed(result)

    @given(st.lists(coords, min_size=1, max_size=20))
    def test_idempotent(self, ring: list[tuple[float, float]]) -> None:
        once = normalize_ring(ring)
        assert normalize_ring(once) == once

    @given(st.lists(coords, min_size=1, max_size=20))
    def test_adds_at_most_one_point(self, ring: list[tuple[float, float]]) -> None:
        result = normalize_ring(ring)
        assert len(result) - len(ring) in (0, 1)
        assert result[: len(ring)] == ring


class TestPolygonValidator:
    """Tests for PolygonValidator."""

    @pytest.fixture
    def validator(self) -> PolygonValidator:
        return PolygonValidator()

    def test_default_min_points(self, validator: PolygonValidator) -> None:
        assert validator.min_points == MIN_CLOSED_RING_POINTS == 4

    def test_closes_triangle(self, validator: PolygonValidator) -> None:
        ring = validator.validate([[0, 0], [1, 0], [1, 1]])
        assert ring == ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 0.0))

    def test_rejects_two_points(self, validator: PolygonValidator) -> None:
        """Two distinct points close to three, below the minimum."""
        with pytest.raises(InvalidPolygonError):
            validator.validate([(0, 0), (1, 1)])

    def test_rejects_closed_triangle_with_three_points(
        self, validator: PolygonValidator
    ) -> None:
        with pytest.raises(InvalidPolygonError):
            validator.validate([(0, 0), (1, 0), (0, 0)])

    def test_rejects_empty(self, validator: PolygonValidator) -> None:
        with pytest.raises(InvalidPolygonError):
            validator.validate([])

    def test_rejects_string(self, validator: PolygonValidator) -> None:
        with pytest.raises(InvalidPolygonError):
            validator.validate("0,0 1,0 1,1")  # type: ignore[arg-type]

    def test_rejects_out_of_range_vertex(self, validator: PolygonValidator) -> None:
        with pytest.raises(InvalidCoordinatesError):
            validator.validate([(0, 0), (1, 0), (1, 95)])

    def test_is_valid(self, validator: PolygonValidator) -> None:
        assert validator.is_valid([(0, 0), (1, 0), (1, 1)])
        assert not validator.is_valid([(0, 0), (1, 0)])
        assert not validator.is_valid([(0, 0), (1, 0), (181, 1)])
