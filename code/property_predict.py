#!/usr/bin/env python3
"""
Property Prediction for Unknown Compounds

Encodes an unknown corpus with the feature space stored in a trained model
package (never re-selecting features from the unknown data) and predicts
every target property the package holds.

Usage:
    python property_predict.py unknown.csv model/property.joblib
    python property_predict.py unknown.csv model/property.joblib -o results/predictions.csv
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

import property_model as pm
from pipeline_errors import SpecPropError
from spectrum_parse import check_required_columns


PASSTHROUGH_COLUMNS = ('RI',)


def predict_unknowns(model_package, data):
    """
    Predicts target properties for an unknown corpus.

    Args:
        model_package (dict): As returned by property_model.load_model_package.
        data (pd.DataFrame): Unknown corpus with Name and MS columns, and
            optionally a retention index column 'RI'.

    Returns:
        tuple: (predictions DataFrame with Name, passthrough columns and
        'pred_<target>' columns; aligned feature table indexed by Name)
    """
    check_required_columns(data, ['Name', 'MS'])
    feature_space = model_package['feature_space']

    spectra = feature_space.parse_corpus(data)
    features = feature_space.transform(spectra)
    predictions = pm.predict_properties(model_package, features)

    result = pd.DataFrame({'Name': features.index})
    for col in PASSTHROUGH_COLUMNS:
        if col in data.columns:
            result[col] = data[col].values
    for col in predictions.columns:
        result[col] = predictions[col].values

    matched = features.any(axis=1).sum()
    print(f"✓ Predictions completed for {len(result)} compounds")
    print(f"  Compounds with at least one canonical feature: {matched}")
    if matched < len(result):
        print(f"  ⚠ {len(result) - matched} compound(s) share no feature with the training corpus")

    return result, features


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Predict properties of unknown compounds using a trained model package',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  python property_predict.py unknown.csv model/property.joblib --output_path result/predictions.csv
  python property_predict.py unknown.csv property.joblib -o predictions.csv --features_path features.csv
        """
    )
    parser.add_argument('input_path', type=str, help='Path to unknown corpus CSV (Name, MS, optional RI)')
    parser.add_argument('model_path', type=str, help='Path to trained model package (.joblib file)')
    parser.add_argument('--output_path', '-o', type=str, default='property_predict.csv',
                        help='Path to save predictions (default: property_predict.csv)')
    parser.add_argument('--features_path', type=str, default=None,
                        help='Optional path to save the aligned feature table')

    args = parser.parse_args(argv)

    if not Path(args.input_path).exists():
        print(f"✗ Error: Input file not found: {args.input_path}")
        sys.exit(1)

    if not Path(args.model_path).exists():
        print(f"✗ Error: Model file not found: {args.model_path}")
        sys.exit(1)

    print("=" * 70)
    print("PROPERTY PREDICTION")
    print("=" * 70)

    model_package = pm.load_model_package(args.model_path)

    try:
        data = pd.read_csv(args.input_path)
        data['Name'] = data['Name'].astype(str)
        result, features = predict_unknowns(model_package, data)
    except (SpecPropError, ValueError, KeyError) as e:
        print(f"✗ Error: {e}")
        sys.exit(1)

    output_path = Path(args.output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    result.to_csv(output_path, index=False)
    print(f"✓ Results saved to: {output_path}")

    if args.features_path:
        features.reset_index().to_csv(args.features_path, index=False)
        print(f"✓ Feature table saved to: {args.features_path}")

    print("\n✓ Prediction completed successfully!")


if __name__ == "__main__":
    main()
