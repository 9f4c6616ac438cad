"""Tests for randomized parameter strategies."""

from __future__ import annotations

import uuid

import pytest

from loadcheck.dsl.params import ParamStrategy, RandomParams, random_params_factory


class TestRandomParams:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(RandomParams(), ParamStrategy)

    def test_random_int_within_inclusive_bounds(self) -> None:
        params = RandomParams(seed=1)
        values = {params.random_int(0, 1) for _ in range(200)}
        assert values == {0, 1}

    def test_random_int_rejects_inverted_range(self) -> None:
        with pytest.raises(ValueError, match="low must be <= high"):
            RandomParams().random_int(5, 1)

    def test_random_string_length_and_charset(self) -> None:
        params = RandomParams(seed=3)
        value = params.random_string(32)
        assert len(value) == 32
        assert all(c in "abcdefghijklmnopqrstuvwxyz0123456789" for c in value)

    def test_random_string_custom_charset(self) -> None:
        assert set(RandomParams(seed=3).random_string(50, charset="ab")) <= {"a", "b"}

    def test_random_string_zero_length(self) -> None:
        assert RandomParams().random_string(0) == ""

    def test_random_string_rejects_negative_length(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            RandomParams().random_string(-1)

    def test_choice(self) -> None:
        assert RandomParams(seed=5).choice(["open", "closed"]) in {"open", "closed"}

    def test_choice_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            RandomParams().choice([])

    def test_uuid4_is_valid_version_4(self) -> None:
        value = RandomParams(seed=9).uuid4()
        assert uuid.UUID(value).version == 4

    def test_same_seed_same_sequence(self) -> None:
        a = RandomParams(seed=42)
        b = RandomParams(seed=42)
        assert [a.random_int(0, 1000) for _ in range(10)] == [
            b.random_int(0, 1000) for _ in range(10)
        ]

    def test_instances_do_not_share_state(self) -> None:
        a = RandomParams(seed=42)
        b = RandomParams(seed=42)
        a.random_int(0, 1000)
        a.random_int(0, 1000)
        assert b.random_int(0, 1000) == RandomParams(seed=42).random_int(0, 1000)


class TestRandomParamsFactory:
    def test_offsets_seed_by_user_id(self) -> None:
        strategy = random_params_factory(3, seed=100)
        assert isinstance(strategy, RandomParams)
        assert strategy.seed == 103

    def test_unseeded(self) -> None:
        strategy = random_params_factory(3, seed=None)
        assert isinstance(strategy, RandomParams)
        assert strategy.seed is None
