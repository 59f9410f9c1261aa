"""Call-sequence generation.

The generator only produces raw material: an action name, a caller drawn
from the sender pool, an actor seed and raw argument values. Everything
that depends on state (which actor, how much) is derived later by the
Handler, so a recorded sequence replays identically against a fresh
fixture.
"""

from __future__ import annotations

import random
from typing import Any, Iterable

from ghostfuzz.core.types import CallRecord
from ghostfuzz.fuzzer.bounding import UINT256_MAX
from ghostfuzz.fuzzer.handler import ActionSpec, ParamKind
from ghostfuzz.target.chain import ZERO_ADDRESS

BOUNDARY_VALUES = (0, 1, 2, 3, UINT256_MAX, UINT256_MAX - 1, 2**128)
BOUNDARY_BIAS = 0.3


class SequenceGenerator:
    """Draw ``CallRecord``s from an action catalog with a seeded RNG."""

    def __init__(
        self,
        rng: random.Random,
        catalog: Iterable[ActionSpec],
        senders: list[str],
        allowed_actions: Iterable[str] | None = None,
    ) -> None:
        if not senders:
            raise ValueError("sender pool must not be empty")
        self._rng = rng
        self._senders = list(senders)

        specs = {spec.name: spec for spec in catalog}
        allowed_names = list(allowed_actions or ())
        if allowed_names:
            unknown = [name for name in allowed_names if name not in specs]
            if unknown:
                raise ValueError(
                    f"unknown actions in allow-list: {', '.join(unknown)}; "
                    f"available: {', '.join(specs)}"
                )
            allowed = set(allowed_names)
            specs = {name: spec for name, spec in specs.items() if name in allowed}
        if not specs:
            raise ValueError("no actions left to fuzz")
        self._specs = list(specs.values())

    @property
    def actions(self) -> list[str]:
        return [spec.name for spec in self._specs]

    def next_call(self) -> CallRecord:
        spec = self._rng.choice(self._specs)
        return CallRecord(
            action=spec.name,
            caller=self._rng.choice(self._senders),
            actor_seed=self._random_uint(),
            args={param.name: self._random_value(param.kind) for param in spec.params},
        )

    def generate(self, depth: int) -> list[CallRecord]:
        return [self.next_call() for _ in range(depth)]

    def _random_value(self, kind: ParamKind) -> Any:
        if kind == ParamKind.ADDRESS:
            return self._rng.choice([ZERO_ADDRESS, *self._senders])
        if kind == ParamKind.BOOL:
            return self._rng.choice([True, False])
        return self._random_uint()

    def _random_uint(self) -> int:
        # Mix boundary values and uniform draws
        if self._rng.random() < BOUNDARY_BIAS:
            return self._rng.choice(BOUNDARY_VALUES)
        return self._rng.getrandbits(256)
