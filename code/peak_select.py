from collections import Counter
from typing import NamedTuple

from tqdm import tqdm

from feature_set import CanonicalPeakSet, rank_by_frequency


"""
Peak Selection
"""


class RankedPeak(NamedTuple):
    mz: float
    intensity: float
    rank: int


def rank_peaks(peaks):
    """
    Ranks one compound's peaks by intensity, highest first.

    The sort is stable, so peaks with exactly equal intensity keep their
    original parse order. Rank 1 is the base peak.

    Args:
        peaks: Sequence of objects with ``mz`` and ``intensity`` attributes
            (PeakObservation or RankedPeak).

    Returns:
        list: RankedPeak ordered by rank.
    """
    ordered = sorted(peaks, key=lambda peak: -peak.intensity)
    return [RankedPeak(peak.mz, peak.intensity, rank) for rank, peak in enumerate(ordered, start=1)]


def select_top_peaks(compounds, top_per_compound=10, progress=False):
    """
    Keeps the ``top_per_compound`` most intense peaks of every compound.

    A compound with fewer peaks keeps all of them; an empty spectrum gives
    an empty list.

    Args:
        compounds (Mapping): Name -> sequence of PeakObservation.
        top_per_compound (int): N, the number of ranks to retain.
        progress (bool): Show a tqdm progress bar.

    Returns:
        dict: Name -> list of RankedPeak with rank <= N, same key order as input.
    """
    if top_per_compound < 1:
        raise ValueError(f"top_per_compound must be positive, got {top_per_compound}")

    items = compounds.items()
    if progress:
        items = tqdm(items, total=len(compounds), desc="Ranking peaks", leave=False)

    return {name: rank_peaks(peaks)[:top_per_compound] for name, peaks in items}


def count_peak_frequencies(ranked_by_compound, top_per_compound=10):
    """Number of compounds in which each m/z appears among its top-N peaks."""
    counts = Counter()
    for ranked in ranked_by_compound.values():
        counts.update({peak.mz for peak in ranked if peak.rank <= top_per_compound})
    return counts


def select_canonical_peaks(ranked_by_compound, top_per_compound=10, top_corpus=100):
    """
    Selects the corpus-wide canonical peak set.

    Each m/z is scored by the number of compounds that retain it in their
    top-N. Values are ordered by that count descending, then by m/z
    ascending, and the first ``top_corpus`` are kept.

    Args:
        ranked_by_compound (Mapping): Output of select_top_peaks.
        top_per_compound (int): N; peaks ranked below N are ignored even if present.
        top_corpus (int): L, maximum size of the canonical set.

    Returns:
        CanonicalPeakSet
    """
    if top_corpus < 1:
        raise ValueError(f"top_corpus must be positive, got {top_corpus}")

    counts = count_peak_frequencies(ranked_by_compound, top_per_compound)
    return CanonicalPeakSet.from_ranking('mz', rank_by_frequency(counts, top_corpus))
