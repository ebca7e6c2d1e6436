import pandas as pd

from feature_matrix import build_intensity_matrix, build_presence_matrix
from loss_select import compute_corpus_losses, select_canonical_losses
from peak_select import select_canonical_peaks, select_top_peaks
from pipeline_errors import FeatureSpaceMismatchError
from spectrum_parse import parse_spectra_df, relative_intensities


class FeatureSpace:
    """
    Canonical peak and loss features learned once from a training corpus.

    ``fit`` selects the CanonicalPeakSet and CanonicalLossSet; afterwards the
    object is read-only and ``transform`` encodes any corpus (training, test
    or unknown) against exactly those sets. Refitting is refused so the
    training and inference matrices can never drift apart.
    """

    def __init__(self, top_per_compound_peaks=10, top_corpus_peaks=100,
                 top_per_compound_losses=10, top_corpus_losses=100,
                 loss_decimals=6, mz_decimals=None, relative_intensity=True, progress=False):
        """
        Args:
            top_per_compound_peaks: N, peaks ranked per compound for peak features.
            top_corpus_peaks: L, size limit of the canonical peak set.
            top_per_compound_losses: M, peaks ranked per compound for loss pairs.
            top_corpus_losses: K, size limit of the canonical loss set.
            loss_decimals: Rounding applied to loss values before matching.
            mz_decimals: Rounding applied to parsed m/z values, None to match exactly.
            relative_intensity: Express intensities as % of each compound's base peak.
            progress: Show tqdm progress bars for per-compound loops.
        """
        self.top_per_compound_peaks = top_per_compound_peaks
        self.top_corpus_peaks = top_corpus_peaks
        self.top_per_compound_losses = top_per_compound_losses
        self.top_corpus_losses = top_corpus_losses
        self.loss_decimals = loss_decimals
        self.mz_decimals = mz_decimals
        self.relative_intensity = relative_intensity
        self.progress = progress

        self._peak_set = None
        self._loss_set = None
        self._ranked_peaks = None
        self._losses = None

    @classmethod
    def from_config(cls, config, progress=False):
        return cls(
            top_per_compound_peaks=config.top_per_compound_peaks,
            top_corpus_peaks=config.top_corpus_peaks,
            top_per_compound_losses=config.top_per_compound_losses,
            top_corpus_losses=config.top_corpus_losses,
            loss_decimals=config.loss_decimals,
            mz_decimals=config.mz_decimals,
            relative_intensity=config.relative_intensity,
            progress=progress,
        )

    @property
    def is_fitted(self):
        return self._peak_set is not None

    @property
    def peak_set(self):
        self._require_fitted()
        return self._peak_set

    @property
    def loss_set(self):
        self._require_fitted()
        return self._loss_set

    @property
    def columns(self):
        """Output column order: peak presence, peak intensity, loss presence, loss intensity."""
        self._require_fitted()
        return (
            self._peak_set.column_names()
            + self._peak_set.column_names(suffix='_int')
            + self._loss_set.column_names()
            + self._loss_set.column_names(suffix='_int')
        )

    def parse_corpus(self, df, name_col='Name', ms_col='MS'):
        """Parses a corpus table with this space's m/z rounding."""
        return parse_spectra_df(df, name_col=name_col, ms_col=ms_col, mz_decimals=self.mz_decimals)

    def _require_fitted(self):
        if not self.is_fitted:
            raise RuntimeError("FeatureSpace is not fitted; call fit() on the training corpus first")

    def _encode_inputs(self, spectra):
        if self.relative_intensity:
            spectra = {name: relative_intensities(peaks) for name, peaks in spectra.items()}
        ranked = select_top_peaks(spectra, self.top_per_compound_peaks, progress=self.progress)
        losses = compute_corpus_losses(
            spectra,
            top_per_compound=self.top_per_compound_losses,
            loss_decimals=self.loss_decimals,
            progress=self.progress,
        )
        return ranked, losses

    def fit(self, spectra):
        """
        Selects the canonical sets from a training corpus.

        Args:
            spectra (Mapping): Name -> list of PeakObservation.

        Returns:
            FeatureSpace: self.

        Raises:
            RuntimeError: If the space has already been fitted.
        """
        if self.is_fitted:
            raise RuntimeError("FeatureSpace is already fitted; canonical sets are fixed once selected")

        ranked, losses = self._encode_inputs(spectra)
        self._ranked_peaks = ranked
        self._losses = losses
        self._peak_set = select_canonical_peaks(
            ranked,
            top_per_compound=self.top_per_compound_peaks,
            top_corpus=self.top_corpus_peaks,
        )
        self._loss_set = select_canonical_losses(losses, top_corpus=self.top_corpus_losses)
        return self

    def _build(self, names, ranked, losses):
        return pd.concat(
            [
                build_presence_matrix(names, ranked, self._peak_set),
                build_intensity_matrix(names, ranked, self._peak_set),
                build_presence_matrix(names, losses, self._loss_set),
                build_intensity_matrix(names, losses, self._loss_set),
            ],
            axis=1,
        )

    def transform(self, spectra, names=None):
        """
        Encodes a corpus against the fitted canonical sets.

        Args:
            spectra (Mapping): Name -> list of PeakObservation.
            names: Row keys in output order; defaults to the keys of
                ``spectra``. A name without a spectrum gets an all-False/0 row.

        Returns:
            pd.DataFrame: Indexed by Name with exactly ``self.columns``.
        """
        self._require_fitted()
        if names is None:
            names = list(spectra.keys())
        ranked, losses = self._encode_inputs(spectra)
        return self._build(names, ranked, losses)

    def fit_transform(self, spectra, names=None):
        self.fit(spectra)
        if names is None:
            names = list(spectra.keys())
        return self._build(names, self._ranked_peaks, self._losses)

    def check_columns(self, feature_matrix):
        """
        Raises FeatureSpaceMismatchError unless ``feature_matrix`` has exactly
        this space's columns in this space's order.
        """
        expected = self.columns
        actual = [str(col) for col in feature_matrix.columns]
        if actual == expected:
            return

        missing = [col for col in expected if col not in set(actual)]
        unexpected = [col for col in actual if col not in set(expected)]
        if not missing and not unexpected:
            raise FeatureSpaceMismatchError("Feature columns are present but in a different order")
        raise FeatureSpaceMismatchError(
            f"Feature columns do not match the canonical feature space "
            f"(missing {len(missing)}: {missing[:5]}, unexpected {len(unexpected)}: {unexpected[:5]})"
        )

    def summary(self):
        self._require_fitted()
        return {
            'canonical_peaks': len(self._peak_set),
            'canonical_losses': len(self._loss_set),
            'feature_columns': len(self.columns),
            'top_peak_mz': [value for value, _ in self._top_ranked(self._peak_set, 5)],
            'top_loss_values': [value for value, _ in self._top_ranked(self._loss_set, 5)],
        }

    @staticmethod
    def _top_ranked(canonical_set, limit):
        pairs = zip(canonical_set.values, canonical_set.frequencies)
        return sorted(pairs, key=lambda item: (-item[1], item[0]))[:limit]

    def __getstate__(self):
        # training intermediates are not needed once the sets are fixed
        state = self.__dict__.copy()
        state['_ranked_peaks'] = None
        state['_losses'] = None
        return state
