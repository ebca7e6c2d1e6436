import math

import numpy as np
import pandas as pd
from pyteomics import mass
from pyteomics.auxiliary import PyteomicsError
from rdkit import Chem
from rdkit.Chem import rdMolDescriptors

from pipeline_errors import UndefinedRatioError, UnparseableFormulaError


"""
Formula Decomposition
"""

ELEMENTS = ('C', 'H', 'O', 'N', 'S')
RATIO_COLUMNS = ('OC', 'HC', 'OSc')


def decompose(formula: str, name=None):
    """
    Counts atoms of the fixed element alphabet C, H, O, N, S.

    Tokenizing is delegated to pyteomics; elements outside the alphabet are
    ignored (they must still be real elements), and alphabet elements absent
    from the formula are recorded as 0.

    Args:
        formula: A chemical formula such as "C6H12O6".
        name: Compound name, only used in error messages.

    Returns:
        dict: element -> count for every element in ELEMENTS.

    Raises:
        UnparseableFormulaError: If the formula is blank, not valid syntax,
            or names an element symbol that does not exist.
    """
    if not isinstance(formula, str) or not formula.strip():
        raise UnparseableFormulaError(f"Formula must be a non-empty string, got {formula!r}", name=name)

    try:
        composition = mass.Composition(formula=formula.strip())
    except PyteomicsError as e:
        raise UnparseableFormulaError(f"Cannot parse formula {formula!r}: {e}", name=name) from e

    # isotope labels such as 'C[13]' are checked by their element symbol
    unknown = sorted(key for key in composition if key.split('[')[0] not in mass.nist_mass)
    if unknown:
        raise UnparseableFormulaError(f"Unknown element symbol(s) {unknown} in formula {formula!r}", name=name)

    return {element: int(composition.get(element, 0)) for element in ELEMENTS}


def formula_ratios(counts, name=None):
    """
    O:C, H:C and the carbon oxidation-state score OSc = 2 * O:C - H:C.

    Raises:
        UndefinedRatioError: If the carbon count is zero.
    """
    carbon = counts.get('C', 0)
    if carbon == 0:
        raise UndefinedRatioError("O:C and H:C are undefined without carbon", name=name)

    oc = counts.get('O', 0) / carbon
    hc = counts.get('H', 0) / carbon
    return {'OC': oc, 'HC': hc, 'OSc': 2 * oc - hc}


def formula_from_smiles(smiles, name=None):
    """Molecular formula of a SMILES string via RDKit."""
    mol = Chem.MolFromSmiles(smiles) if isinstance(smiles, str) and smiles else None
    if mol is None:
        raise UnparseableFormulaError(f"Cannot derive a formula from SMILES {smiles!r}", name=name)
    return rdMolDescriptors.CalcMolFormula(mol)


def _is_blank(value):
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def formula_table(df: pd.DataFrame, name_col='Name', formula_col='ChemFormula', smiles_col='SMILES'):
    """
    Builds the per-compound formula vector table.

    Columns are the element counts C, H, O, N, S and the derived ratios OC,
    HC and OSc. A blank formula falls back to the SMILES column when the
    table has one. Ratios of carbon-free compounds are NaN, with a warning;
    those rows drop out of training when a ratio is the target.

    Args:
        df: Training corpus table.
        name_col: Compound key column.
        formula_col: Chemical formula column.
        smiles_col: Optional SMILES column used when a formula is blank.

    Returns:
        pd.DataFrame: Indexed by name.

    Raises:
        UnparseableFormulaError: On any malformed formula, or a blank formula
            with no usable SMILES.
    """
    if formula_col not in df.columns:
        raise ValueError(f"Input DataFrame must contain a '{formula_col}' column.")

    has_smiles = smiles_col in df.columns
    rows = []
    no_carbon = []
    for _, row in df.iterrows():
        name = str(row[name_col])
        formula = row[formula_col]
        if _is_blank(formula) and has_smiles and not _is_blank(row[smiles_col]):
            formula = formula_from_smiles(row[smiles_col], name=name)

        counts = decompose(formula, name=name)
        try:
            derived = formula_ratios(counts, name=name)
        except UndefinedRatioError:
            no_carbon.append(name)
            derived = {column: np.nan for column in RATIO_COLUMNS}
        rows.append({**counts, **derived})

    if no_carbon:
        print(f"⚠ Warning: {len(no_carbon)} compound(s) have no carbon; ratios set to NaN: {no_carbon[:10]}")

    return pd.DataFrame(
        rows,
        index=pd.Index(df[name_col].astype(str).tolist(), name='Name'),
        columns=list(ELEMENTS) + list(RATIO_COLUMNS),
    )
