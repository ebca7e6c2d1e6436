import numpy as np
import pandas as pd


"""
Feature Matrix Building

Both builders allocate the full (names x canonical set) array up front with
the column's fill value and only write cells whose feature is canonical, so
the shape never depends on the data being encoded.
"""

PRESENCE_FILL = False
INTENSITY_FILL = 0.0
INTENSITY_SUFFIX = '_int'


def _checked_names(compound_names):
    names = [str(name) for name in compound_names]
    if len(set(names)) != len(names):
        seen = set()
        duplicated = [name for name in names if name in seen or seen.add(name)]
        raise ValueError(f"Compound names must be unique; duplicated: {duplicated[:10]}")
    return names


def _feature_value(item):
    # plain values, (value, intensity) pairs, or peak/loss tuples with mz/value fields
    if hasattr(item, 'value'):
        return item.value
    if hasattr(item, 'mz'):
        return item.mz
    if isinstance(item, tuple):
        return item[0]
    return item


def _feature_intensity(item):
    if hasattr(item, 'intensity'):
        return item.intensity
    return item[1]


def build_presence_matrix(compound_names, per_compound_values, canonical_set):
    """
    Boolean matrix of which canonical features each compound shows.

    Args:
        compound_names: Row keys, in output order. Names absent from
            ``per_compound_values`` get an all-False row.
        per_compound_values (Mapping): Name -> iterable of feature values
            (floats, (value, intensity) pairs, RankedPeak or LossObservation).
        canonical_set (CanonicalFeatureSet): Defines the columns.

    Returns:
        pd.DataFrame: bool, indexed by name, one column per canonical value.
    """
    names = _checked_names(compound_names)
    matrix = np.full((len(names), len(canonical_set)), PRESENCE_FILL, dtype=bool)

    for row, name in enumerate(names):
        for item in per_compound_values.get(name, ()):
            col = canonical_set.index_of(_feature_value(item))
            if col is not None:
                matrix[row, col] = True

    return pd.DataFrame(
        matrix,
        index=pd.Index(names, name='Name'),
        columns=canonical_set.column_names(),
    )


def build_intensity_matrix(compound_names, per_compound_values, canonical_set):
    """
    Numeric matrix of feature intensities.

    When a compound yields the same canonical value more than once (duplicate
    m/z, or several peak pairs with the same loss), the maximum intensity is
    kept. Absent entries are exactly 0.0.

    Args:
        compound_names: Row keys, in output order.
        per_compound_values (Mapping): Name -> iterable of (value, intensity)
            pairs, RankedPeak or LossObservation.
        canonical_set (CanonicalFeatureSet): Defines the columns.

    Returns:
        pd.DataFrame: float64, indexed by name, columns suffixed '_int'.
    """
    names = _checked_names(compound_names)
    matrix = np.full((len(names), len(canonical_set)), INTENSITY_FILL, dtype=np.float64)

    for row, name in enumerate(names):
        for item in per_compound_values.get(name, ()):
            col = canonical_set.index_of(_feature_value(item))
            if col is not None:
                matrix[row, col] = max(matrix[row, col], float(_feature_intensity(item)))

    return pd.DataFrame(
        matrix,
        index=pd.Index(names, name='Name'),
        columns=canonical_set.column_names(suffix=INTENSITY_SUFFIX),
    )
