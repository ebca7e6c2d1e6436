import pytest

from loss_select import compute_corpus_losses, compute_losses, select_canonical_losses
from spectrum_parse import PeakObservation


def _peaks(*pairs):
    return [PeakObservation(float(mz), float(i)) for mz, i in pairs]


def test_compute_losses_enumerates_rank_pairs():
    # ranks: 82 -> 1, 64 -> 2, 100 -> 3
    losses = compute_losses(_peaks((100, 10), (82, 50), (64, 30)), top_per_compound=3)
    assert [loss.value for loss in losses] == [18.0, 18.0, 36.0]
    assert [(loss.first.rank, loss.second.rank) for loss in losses] == [(1, 2), (1, 3), (2, 3)]


def test_compute_losses_respects_top_m():
    losses = compute_losses(_peaks((100, 10), (82, 50), (64, 30)), top_per_compound=2)
    assert [loss.value for loss in losses] == [18.0]


def test_compute_losses_needs_two_peaks():
    assert compute_losses(_peaks((50, 1)), top_per_compound=5) == []
    assert compute_losses([], top_per_compound=5) == []


def test_compute_losses_rounds_subtraction_noise():
    losses = compute_losses(_peaks((0.3, 2), (0.1, 1)), top_per_compound=2)
    assert losses[0].value == 0.2


def test_loss_intensity_is_weaker_peak():
    losses = compute_losses(_peaks((50, 900), (40, 100)), top_per_compound=2)
    assert losses[0].intensity == 100.0


def test_select_canonical_losses_ranks_by_occurrence():
    losses = compute_corpus_losses({
        'A': _peaks((100, 10), (82, 50), (64, 30)),
    }, top_per_compound=3)
    canonical = select_canonical_losses(losses, top_corpus=1)
    assert canonical.values == (18.0,)
    assert canonical.frequencies == (2,)


def test_select_canonical_losses_accepts_flat_iterable():
    losses = compute_losses(_peaks((100, 10), (82, 50), (64, 30)), top_per_compound=3)
    canonical = select_canonical_losses(iter(losses), top_corpus=5)
    assert canonical.values == (18.0, 36.0)


def test_select_canonical_losses_never_selects_zero():
    losses = compute_corpus_losses({
        'A': _peaks((50, 10), (50, 5), (60, 1)),
        'B': _peaks((70, 10), (70, 5)),
    }, top_per_compound=3)
    canonical = select_canonical_losses(losses, top_corpus=5)
    assert 0.0 not in canonical
    assert canonical.values == (10.0,)


def test_select_canonical_losses_breaks_ties_by_ascending_value():
    losses = compute_corpus_losses({
        'A': _peaks((60, 10), (45, 5)),
        'B': _peaks((60, 10), (48, 5)),
    }, top_per_compound=2)
    canonical = select_canonical_losses(losses, top_corpus=1)
    assert canonical.values == (12.0,)


def test_select_canonical_losses_is_reproducible():
    corpus = {
        'A': _peaks((91, 100), (65, 40), (39, 20), (51, 10)),
        'B': _peaks((105, 100), (77, 60), (51, 30)),
        'C': _peaks((77, 100), (51, 50), (39, 10)),
    }
    first = select_canonical_losses(compute_corpus_losses(corpus, top_per_compound=3), top_corpus=3)
    second = select_canonical_losses(compute_corpus_losses(corpus, top_per_compound=3), top_corpus=3)
    assert first == second
    assert first.column_names() == [f"nl_{v:g}" for v in first.values]


def test_select_canonical_losses_rejects_non_positive_k():
    with pytest.raises(ValueError):
        select_canonical_losses([], top_corpus=0)
