import math

import pandas as pd
import pytest

from pipeline_errors import MalformedSpectrumError
from spectrum_parse import PeakObservation, parse_spectra_df, parse_spectrum, relative_intensities


def test_parse_spectrum_keeps_parse_order():
    peaks = parse_spectrum("50 900; 40 100")
    assert peaks == [PeakObservation(50.0, 900.0), PeakObservation(40.0, 100.0)]


def test_parse_spectrum_tolerates_whitespace_and_empty_tokens():
    peaks = parse_spectrum("  50 900;;   40.5 100 ; ")
    assert [p.mz for p in peaks] == [50.0, 40.5]
    assert [p.intensity for p in peaks] == [900.0, 100.0]


def test_parse_spectrum_empty_string_gives_no_peaks():
    assert parse_spectrum("") == []
    assert parse_spectrum(" ; ;") == []


def test_parse_spectrum_allows_explicit_zero_intensity():
    assert parse_spectrum("50 0") == [PeakObservation(50.0, 0.0)]


@pytest.mark.parametrize("raw", ["50", "50 900 3", "abc 100", "50 x", "-5 10", "50 -1", "nan 3", "50 inf"])
def test_parse_spectrum_rejects_malformed_tokens(raw):
    with pytest.raises(MalformedSpectrumError):
        parse_spectrum(raw)


def test_parse_spectrum_rejects_missing_value():
    with pytest.raises(MalformedSpectrumError):
        parse_spectrum(float('nan'))
    with pytest.raises(MalformedSpectrumError):
        parse_spectrum(None)


def test_malformed_spectrum_error_names_the_compound():
    with pytest.raises(MalformedSpectrumError) as excinfo:
        parse_spectrum("50;60 1", name="cmp7")
    assert excinfo.value.name == "cmp7"
    assert "cmp7" in str(excinfo.value)


def test_parse_spectrum_rounds_mz_when_requested():
    peaks = parse_spectrum("50.04 10; 60.96 5", mz_decimals=1)
    assert [p.mz for p in peaks] == [50.0, 61.0]


def test_parse_spectra_df_returns_rows_in_order():
    df = pd.DataFrame({'Name': ['B', 'A'], 'MS': ["60 1", "50 2; 40 1"]})
    spectra = parse_spectra_df(df)
    assert list(spectra) == ['B', 'A']
    assert len(spectra['A']) == 2


def test_parse_spectra_df_fails_whole_corpus_on_one_bad_row():
    df = pd.DataFrame({'Name': ['A', 'B'], 'MS': ["50 2", "50 2 2"]})
    with pytest.raises(MalformedSpectrumError) as excinfo:
        parse_spectra_df(df)
    assert excinfo.value.name == 'B'


def test_parse_spectra_df_requires_unique_names():
    df = pd.DataFrame({'Name': ['A', 'A'], 'MS': ["50 2", "60 2"]})
    with pytest.raises(ValueError, match="unique"):
        parse_spectra_df(df)


def test_parse_spectra_df_requires_columns():
    with pytest.raises(ValueError, match="MS"):
        parse_spectra_df(pd.DataFrame({'Name': ['A']}))


def test_relative_intensities_scale_to_base_peak():
    peaks = relative_intensities([PeakObservation(50.0, 200.0), PeakObservation(40.0, 50.0)])
    assert [p.intensity for p in peaks] == [100.0, 25.0]
    assert [p.mz for p in peaks] == [50.0, 40.0]


def test_relative_intensities_keep_all_zero_spectrum():
    peaks = [PeakObservation(50.0, 0.0)]
    assert relative_intensities(peaks) == peaks
    assert relative_intensities([]) == []
    assert not math.isnan(relative_intensities(peaks)[0].intensity)
