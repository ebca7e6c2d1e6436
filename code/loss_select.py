from collections import Counter
from itertools import chain, combinations
from typing import NamedTuple

from tqdm import tqdm

from feature_set import CanonicalLossSet, rank_by_frequency
from peak_select import RankedPeak, rank_peaks


"""
Neutral Loss Selection
"""


class LossObservation(NamedTuple):
    value: float
    first: RankedPeak
    second: RankedPeak

    @property
    def intensity(self):
        # weaker peak of the pair
        return min(self.first.intensity, self.second.intensity)


def compute_losses(compound_peaks, top_per_compound=10, loss_decimals=6):
    """
    Enumerates neutral losses between one compound's most intense peaks.

    The peaks are ranked the same way as for peak selection, but the cut-off
    ``top_per_compound`` (M) is independent of N. Every unordered pair of
    ranks i < j <= M gives one LossObservation with value ``|mz_i - mz_j|``,
    rounded to ``loss_decimals`` to remove floating-point subtraction noise.

    Zero-valued losses are returned here; they are never selected as
    canonical features.

    Args:
        compound_peaks: Sequence of PeakObservation (or RankedPeak).
        top_per_compound (int): M.
        loss_decimals (int): Rounding applied to each difference, None for raw floats.

    Returns:
        list: LossObservation ordered by (rank_i, rank_j).
    """
    if top_per_compound < 1:
        raise ValueError(f"top_per_compound must be positive, got {top_per_compound}")

    top = rank_peaks(compound_peaks)[:top_per_compound]
    losses = []
    for first, second in combinations(top, 2):
        value = abs(first.mz - second.mz)
        if loss_decimals is not None:
            value = round(value, loss_decimals)
        losses.append(LossObservation(value, first, second))
    return losses


def compute_corpus_losses(compounds, top_per_compound=10, loss_decimals=6, progress=False):
    """Name -> compute_losses(...) for every compound of a corpus."""
    items = compounds.items()
    if progress:
        items = tqdm(items, total=len(compounds), desc="Computing losses", leave=False)
    return {
        name: compute_losses(peaks, top_per_compound=top_per_compound, loss_decimals=loss_decimals)
        for name, peaks in items
    }


def count_loss_frequencies(loss_observations):
    """Occurrences of each non-zero loss value over all (compound, pair) instances."""
    return Counter(loss.value for loss in loss_observations if loss.value != 0)


def select_canonical_losses(loss_observations, top_corpus=100):
    """
    Selects the corpus-wide canonical loss set.

    Loss values are matched by exact equality (after the rounding done in
    compute_losses), ranked by occurrence count descending, ties broken by
    ascending value, and the first ``top_corpus`` are kept. A zero loss is
    never a candidate.

    Args:
        loss_observations: Iterable of LossObservation, or a mapping of
            Name -> LossObservation sequence as returned by compute_corpus_losses.
        top_corpus (int): K, maximum size of the canonical set.

    Returns:
        CanonicalLossSet
    """
    if top_corpus < 1:
        raise ValueError(f"top_corpus must be positive, got {top_corpus}")

    if hasattr(loss_observations, 'values') and callable(loss_observations.values):
        loss_observations = chain.from_iterable(loss_observations.values())

    counts = count_loss_frequencies(loss_observations)
    return CanonicalLossSet.from_ranking('nl', rank_by_frequency(counts, top_corpus))
