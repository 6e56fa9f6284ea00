"""Actor reputation ledger.

Scores are plain integers. Known actors start at the initial score, unknown
actors are treated as starting there on their first adjustment. Scores are
not clamped in either direction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

INITIAL_REPUTATION = 100


@dataclass(frozen=True)
class ReputationChange:
    """One adjustment, kept for the in-process audit trail."""
    actor_id: str
    delta: int
    score: int
    reason: str


class ReputationLedger:

    def __init__(
        self,
        known_actors: Iterable[str] = (),
        initial_score: int = INITIAL_REPUTATION,
        scores: Optional[Dict[str, int]] = None,
    ):
        self.initial_score = initial_score
        self._scores: Dict[str, int] = {a: initial_score for a in known_actors}
        if scores:
            self._scores.update({k: int(v) for k, v in scores.items()})
        self._history: List[ReputationChange] = []

    def score(self, actor_id: str) -> int:
        return self._scores.get(actor_id, self.initial_score)

    def adjust(self, actor_id: str, delta: int, reason: str) -> int:
        new_score = self.score(actor_id) + delta
        self._scores[actor_id] = new_score
        self._history.append(ReputationChange(actor_id, delta, new_score, reason))
        return new_score

    def reward(self, actor_id: str, amount: int, reason: str) -> int:
        return self.adjust(actor_id, abs(amount), reason)

    def penalize(self, actor_id: str, amount: int, reason: str) -> int:
        return self.adjust(actor_id, -abs(amount), reason)

    @property
    def history(self) -> Tuple[ReputationChange, ...]:
        return tuple(self._history)

    def scores(self) -> Dict[str, int]:
        return dict(self._scores)

    def to_dict(self) -> Dict[str, int]:
        return dict(self._scores)

    @classmethod
    def from_dict(
        cls,
        data: Optional[Dict[str, int]],
        known_actors: Iterable[str] = (),
        initial_score: int = INITIAL_REPUTATION,
    ) -> "ReputationLedger":
        # Absent scores mean every known actor is back at the initial value
        return cls(known_actors=known_actors, initial_score=initial_score, scores=data or None)
