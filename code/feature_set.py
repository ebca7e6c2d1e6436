from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Tuple

import numpy as np


def format_feature_value(value) -> str:
    """Column-safe text for an m/z or loss value: 50.0 -> '50', 60.05 -> '60.05'."""
    return np.format_float_positional(float(value), trim='-')


def rank_by_frequency(counts: Counter, limit):
    """
    Orders counted values by frequency descending, ties broken by ascending
    value, and keeps the first ``limit`` entries.

    Returns:
        list: (value, count) tuples.
    """
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return ordered[:limit]


@dataclass(frozen=True)
class CanonicalFeatureSet:
    """
    Fixed set of diagnostic values (peak m/z or neutral-loss mass) selected
    once from a training corpus.

    ``values`` is sorted ascending and defines column order for every matrix
    built from this set. ``frequencies`` holds the training-corpus count of
    each value, aligned with ``values``.
    """

    prefix: str
    values: Tuple[float, ...]
    frequencies: Tuple[int, ...]
    _index: Dict[float, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if len(self.values) != len(self.frequencies):
            raise ValueError("values and frequencies must have the same length")
        if len(set(self.values)) != len(self.values):
            raise ValueError(f"Duplicate values in canonical '{self.prefix}' set")
        object.__setattr__(self, '_index', {value: i for i, value in enumerate(self.values)})

    @classmethod
    def from_ranking(cls, prefix, ranking):
        """Builds a set from (value, count) tuples in selection order."""
        ranking = sorted(ranking, key=lambda item: item[0])
        return cls(
            prefix=prefix,
            values=tuple(float(value) for value, _ in ranking),
            frequencies=tuple(int(count) for _, count in ranking),
        )

    def __len__(self):
        return len(self.values)

    def __contains__(self, value):
        return value in self._index

    def __iter__(self):
        return iter(self.values)

    def index_of(self, value):
        """Column position of ``value``, or None if it is not canonical."""
        return self._index.get(value)

    def column_names(self, suffix=''):
        return [f"{self.prefix}_{format_feature_value(value)}{suffix}" for value in self.values]

    def frequency_of(self, value):
        idx = self.index_of(value)
        return None if idx is None else self.frequencies[idx]


class CanonicalPeakSet(CanonicalFeatureSet):
    pass


class CanonicalLossSet(CanonicalFeatureSet):
    pass
