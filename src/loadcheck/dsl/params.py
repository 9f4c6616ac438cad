"""Randomized parameter strategies for request templates."""

from __future__ import annotations

import random
import string
import uuid
from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")

_ALPHANUMERIC = string.ascii_lowercase + string.digits


@runtime_checkable
class ParamStrategy(Protocol):
    """Source of randomized values for a single virtual user.

    The engine creates one instance per virtual user, so implementations
    need not be thread-safe.
    """

    def random_int(self, low: int, high: int) -> int:
        """Return an integer in ``[low, high]`` (both inclusive)."""
        ...

    def random_string(self, length: int, charset: str = _ALPHANUMERIC) -> str:
        """Return a string of ``length`` characters drawn from ``charset``."""
        ...

    def choice(self, options: Sequence[T]) -> T:
        """Return one element of ``options``."""
        ...

    def uuid4(self) -> str:
        """Return a random UUID in canonical string form."""
        ...


class RandomParams:
    """ParamStrategy backed by a private ``random.Random`` instance.

    Passing a seed makes the value sequence reproducible, which is how the
    engine supports deterministic runs (``RunConfig.seed``).

    Attributes:
        seed: The seed this instance was created with, or None.
    """

    def __init__(self, seed: int | None = None) -> None:
        self.seed = seed
        self._rng = random.Random(seed)  # noqa: S311

    def random_int(self, low: int, high: int) -> int:
        if low > high:
            msg = f"low must be <= high, got {low} > {high}"
            raise ValueError(msg)
        return self._rng.randint(low, high)

    def random_string(self, length: int, charset: str = _ALPHANUMERIC) -> str:
        if length < 0:
            msg = f"length must be non-negative, got {length}"
            raise ValueError(msg)
        if not charset:
            msg = "charset must not be empty"
            raise ValueError(msg)
        return "".join(self._rng.choices(charset, k=length))

    def choice(self, options: Sequence[T]) -> T:
        if not options:
            msg = "options must not be empty"
            raise ValueError(msg)
        return self._rng.choice(options)

    def uuid4(self) -> str:
        return str(uuid.UUID(int=self._rng.getrandbits(128), version=4))


def random_params_factory(user_id: int, seed: int | None) -> ParamStrategy:
    """Default per-user strategy factory used by the scheduler.

    Args:
        user_id: Zero-based virtual user index.
        seed: Run-level base seed, or None for nondeterministic values.

    Returns:
        A fresh RandomParams instance owned by that user.
    """
    return RandomParams(None if seed is None else seed + user_id)
