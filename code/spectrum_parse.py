import math
from typing import NamedTuple

import pandas as pd

from pipeline_errors import MalformedSpectrumError


"""
Spectrum Parsing
"""


class PeakObservation(NamedTuple):
    mz: float
    intensity: float


def _parse_number(text, token, name):
    try:
        value = float(text)
    except ValueError:
        raise MalformedSpectrumError(f"Non-numeric field {text!r} in peak token {token!r}", name=name)
    if not math.isfinite(value) or value < 0:
        raise MalformedSpectrumError(f"Peak field must be a non-negative number, got {text!r}", name=name)
    return value


def parse_spectrum(ms_string, name=None, mz_decimals=None):
    """
    Converts a semicolon-delimited peak string into a list of PeakObservation.

    Each token is ``"<mz> <intensity>"``; surrounding whitespace is ignored
    and empty tokens (e.g. a trailing ';') are dropped.

    Args:
        ms_string (str): The raw peak string, e.g. ``"50 900; 40 100"``.
        name (str): Compound name, only used in error messages.
        mz_decimals (int): If given, m/z values are rounded to this many decimals.

    Returns:
        list: PeakObservation in original parse order.

    Raises:
        MalformedSpectrumError: If the value is not a string or a token does
            not split into exactly two non-negative numbers.
    """
    if not isinstance(ms_string, str):
        raise MalformedSpectrumError(f"Spectrum must be a string, got {ms_string!r}", name=name)

    peaks = []
    for token in ms_string.split(';'):
        token = token.strip()
        if not token:
            continue

        fields = token.split()
        if len(fields) != 2:
            raise MalformedSpectrumError(
                f"Peak token {token!r} must have exactly two fields, found {len(fields)}", name=name
            )

        mz = _parse_number(fields[0], token, name)
        intensity = _parse_number(fields[1], token, name)
        if mz_decimals is not None:
            mz = round(mz, mz_decimals)
        peaks.append(PeakObservation(mz, intensity))

    return peaks


def check_required_columns(df: pd.DataFrame, columns):
    missing_cols = [col for col in columns if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Input DataFrame is missing required column(s): {missing_cols}")


def parse_spectra_df(df: pd.DataFrame, name_col='Name', ms_col='MS', mz_decimals=None):
    """
    Parses the spectrum column of a corpus table.

    Args:
        df: DataFrame with a unique name column and a peak-string column.
        name_col: Column holding the compound key.
        ms_col: Column holding the semicolon-delimited peak strings.
        mz_decimals: Optional m/z rounding passed to parse_spectrum.

    Returns:
        dict: Name -> list of PeakObservation, in table row order.

    Raises:
        ValueError: If a required column is missing or a name is duplicated.
        MalformedSpectrumError: If any row's spectrum is malformed. One bad
            compound fails the whole corpus since the feature sets are
            corpus-wide.
    """
    check_required_columns(df, [name_col, ms_col])

    names = df[name_col].astype(str)
    duplicated = names[names.duplicated()].unique().tolist()
    if duplicated:
        raise ValueError(f"Column '{name_col}' must be unique; duplicated: {duplicated[:10]}")

    spectra = {}
    for name, ms_string in zip(names, df[ms_col]):
        spectra[name] = parse_spectrum(ms_string, name=name, mz_decimals=mz_decimals)
    return spectra


def relative_intensities(peaks):
    """
    Scales intensities to percent of the base peak. A spectrum whose base
    peak is zero keeps its zeros.
    """
    if not peaks:
        return []
    base = max(peak.intensity for peak in peaks)
    if base == 0:
        return list(peaks)
    return [PeakObservation(peak.mz, peak.intensity * 100.0 / base) for peak in peaks]
