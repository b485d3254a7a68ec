from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

import numpy as np
from tqdm import tqdm

from text_rules import preprocess


class MarkovError(Exception):
    """Base class for errors raised by the Markov text engine."""


class MalformedDistributionError(MarkovError, RuntimeError):
    """A distribution cannot cover a draw. Indicates a training bug."""


class EmptySampleError(MarkovError, ValueError):
    """Nothing is left of the sample after preprocessing."""


@dataclass(frozen=True, eq=False)
class CharDistribution:
    """Next-character counts for one context, kept in first-seen order.

    Sampling walks the entries in that order, so the order is part of the
    model's observable behaviour.
    """

    chars: Tuple[str, ...]
    counts: np.ndarray
    cumulative: np.ndarray = field(repr=False)
    total: int

    @classmethod
    def from_counts(cls, counts: Mapping[str, int]) -> "CharDistribution":
        if not counts:
            raise MalformedDistributionError("distribution has no entries")
        chars = tuple(counts.keys())
        values = np.array([counts[c] for c in chars], dtype=np.int64)
        if (values <= 0).any():
            raise MalformedDistributionError(f"non-positive count in distribution: {dict(counts)!r}")
        cumulative = np.cumsum(values)
        values.setflags(write=False)
        cumulative.setflags(write=False)
        return cls(chars=chars, counts=values, cumulative=cumulative, total=int(cumulative[-1]))

    def __len__(self) -> int:
        return len(self.chars)

    def items(self) -> Iterator[Tuple[str, int]]:
        return zip(self.chars, (int(c) for c in self.counts))

    def sample(self, draw: float) -> str:
        """Inverse-CDF sampling: first entry whose cumulative count >= draw * total."""
        if not 0.0 <= draw < 1.0:
            raise ValueError(f"draw must be in [0, 1), got {draw!r}")
        n = draw * self.total
        index = int(np.searchsorted(self.cumulative, n, side="left"))
        if index >= len(self.chars):
            raise MalformedDistributionError(
                f"incomplete distribution: draw {draw!r} not covered (total={self.total})"
            )
        return self.chars[index]


class MarkovModel:
    """A trained context table. Read-only once built by `analyse`.

    `predict` is the next-character transition: the longest trained suffix
    of the context is looked up, backing off one character at a time down
    to the empty context.
    """

    def __init__(
        self,
        table: Mapping[str, CharDistribution],
        max_order: int,
        *,
        include_order_zero: bool = True,
        empty_seed: str = " ",
    ) -> None:
        self._table = MappingProxyType(dict(table))
        self.max_order = max_order
        self.include_order_zero = include_order_zero
        self.empty_seed = empty_seed
        seen: Dict[str, None] = {}
        for dist in self._table.values():
            for ch in dist.chars:
                seen.setdefault(ch, None)
        self._alphabet = "".join(seen)

    @property
    def table(self) -> Mapping[str, CharDistribution]:
        return self._table

    @property
    def contexts(self) -> Tuple[str, ...]:
        return tuple(self._table.keys())

    def __contains__(self, context: object) -> bool:
        return context in self._table

    def __len__(self) -> int:
        return len(self._table)

    def distribution(self, context: str) -> CharDistribution:
        return self._table[context]

    def alphabet(self) -> str:
        """Characters the model can emit, in first-seen order."""
        return self._alphabet

    def stats(self) -> Dict[str, float]:
        if not self._table:
            return {"contexts": 0, "observations": 0, "avg_observations_per_context": 0.0, "alphabet_size": 0}
        observations = sum(dist.total for dist in self._table.values())
        return {
            "contexts": len(self._table),
            "observations": observations,
            "avg_observations_per_context": observations / len(self._table),
            "alphabet_size": len(self.alphabet()),
        }

    def predict(self, context: str, draw: float) -> str:
        if not context:
            context = self.empty_seed
        # suffixes from the full context down to ""
        for start in range(len(context) + 1):
            dist = self._table.get(context[start:])
            if dist is not None:
                return dist.sample(draw)
        raise MalformedDistributionError(f"no trained context matches {context!r}, empty context missing")

    __call__ = predict


def count_contexts(text: str, max_order: int, *, include_order_zero: bool = True, progress: bool = False) -> Dict[str, Counter]:
    """Count context -> next-character occurrences for every order.

    Only full-length contexts are counted per order, so each context's
    total is exactly the number of times it was followed by a character.
    """
    counts: Dict[str, Counter] = defaultdict(Counter)
    first_order = 0 if (include_order_zero or max_order == 0) else 1
    orders = range(first_order, max_order + 1)
    for order in tqdm(orders, desc="analyse", ncols=0, disable=not progress):
        for i in range(order, len(text)):
            counts[text[i - order : i]][text[i]] += 1
    if text and "" not in counts:
        # the opening character only has the clamped empty context
        counts[""][text[0]] += 1
    return counts


def analyse(
    sample: str,
    max_order: int = 2,
    *,
    include_order_zero: bool = True,
    empty_seed: str = " ",
    progress: bool = False,
) -> MarkovModel:
    """Train a character-level Markov model on a raw sample.

    The sample is preprocessed once, then every context of length
    0..max_order (1..max_order when `include_order_zero` is False) is
    counted against the character that follows it.

    Raises ValueError for a bad `max_order` and EmptySampleError when the
    sample has no characters left after preprocessing.
    """
    if isinstance(max_order, bool) or not isinstance(max_order, int) or max_order < 0:
        raise ValueError(f"max_order must be a non-negative integer, got {max_order!r}")
    text = preprocess(sample)
    if not text.strip():
        raise EmptySampleError("sample is empty after preprocessing")

    counts = count_contexts(text, max_order, include_order_zero=include_order_zero, progress=progress)
    table = {context: CharDistribution.from_counts(dist) for context, dist in counts.items()}
    return MarkovModel(table, max_order, include_order_zero=include_order_zero, empty_seed=empty_seed)
