import math

import pandas as pd
from sklearn.model_selection import train_test_split

from pipeline_errors import InsufficientCategoryError


MISSING_CATEGORY = '<missing>'


def stratified_split(compounds: pd.DataFrame, stratify_by='Class', ratio=0.8, seed=42):
    """
    Splits a corpus into train and test partitions preserving category proportions.

    The split is disjoint and exhaustive, and identical for identical
    (input, ratio, seed). Rows with no category value are stratified as
    their own '<missing>' category.

    Args:
        compounds: Corpus table, one row per compound.
        stratify_by: Categorical column used for stratification. None gives a plain
            shuffled split.
        ratio: Fraction of rows assigned to the training partition.
        seed: Random seed.

    Returns:
        tuple: (train, test) DataFrames with the original index and columns.

    Raises:
        ValueError: If the column is missing or ratio is not in (0, 1).
        InsufficientCategoryError: If a category has fewer than two members,
            or either partition would be smaller than the number of categories.
    """
    if not 0 < ratio < 1:
        raise ValueError(f"Split ratio must be between 0 and 1, got {ratio}")
    if stratify_by is None:
        return train_test_split(compounds, train_size=ratio, random_state=seed, shuffle=True)
    if stratify_by not in compounds.columns:
        raise ValueError(f"Stratification column '{stratify_by}' not found.")

    categories = compounds[stratify_by].astype(object).where(compounds[stratify_by].notna(), MISSING_CATEGORY)
    categories = categories.astype(str)
    counts = categories.value_counts()

    too_small = counts[counts < 2]
    if not too_small.empty:
        raise InsufficientCategoryError(
            f"Categories in '{stratify_by}' need at least 2 members to split: {too_small.to_dict()}"
        )

    n_rows = len(compounds)
    n_train = math.floor(ratio * n_rows)
    n_test = n_rows - n_train
    if min(n_train, n_test) < len(counts):
        raise InsufficientCategoryError(
            f"A {ratio:.2f} split of {n_rows} rows gives {n_train} train / {n_test} test rows, "
            f"fewer than the {len(counts)} categories in '{stratify_by}'"
        )

    train, test = train_test_split(
        compounds,
        train_size=n_train,
        test_size=n_test,
        stratify=categories,
        random_state=seed,
        shuffle=True,
    )
    return train, test
