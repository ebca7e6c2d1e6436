#!/usr/bin/env python3
"""
Property Model Training

Builds the canonical peak/loss feature space from a labelled reference
corpus, splits it into train/test partitions, trains one random forest per
target property and saves everything needed for prediction in one joblib
model package.

Usage:
    python property_train.py train_corpus.csv --model_path model/property.joblib
    python property_train.py train_corpus.csv --targets C OSc --result_path results/
    python property_train.py train_corpus.csv --config config.json
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

import pandas as pd

import corpus_split
import property_model as pm
from feature_space import FeatureSpace
from formula_decompose import formula_table
from pipeline_config import PipelineConfig
from pipeline_errors import MissingPropertyError, SpecPropError
from spectrum_parse import check_required_columns


def load_corpus(input_path, required_cols=('Name', 'MS')):
    """Reads a corpus CSV and checks its key columns."""
    df = pd.read_csv(input_path)
    check_required_columns(df, required_cols)
    df['Name'] = df['Name'].astype(str)
    print(f"✓ Data loaded successfully from: {input_path}")
    print(f"  Number of compounds: {len(df)}")
    return df


def property_table(df, targets, formula_col='ChemFormula'):
    """
    Target values per compound, indexed by Name.

    Targets are taken from the corpus columns or, for targets the corpus
    lacks, from the formula vector (C, H, O, N, S, OC, HC, OSc) when the
    corpus has a formula column. Corpus columns win over formula-derived
    ones of the same name.

    Raises:
        MissingPropertyError: If a target is in neither source.
    """
    properties = df.set_index('Name')
    needs_formula = any(target not in properties.columns for target in targets)
    if needs_formula and formula_col in df.columns:
        formulas = formula_table(df, formula_col=formula_col)
        extra = [col for col in formulas.columns if col not in properties.columns]
        properties = properties.join(formulas[extra])

    missing = [target for target in targets if target not in properties.columns]
    if missing:
        raise MissingPropertyError(f"Target property column(s) not found: {missing}")

    return properties[list(targets)].apply(pd.to_numeric)


def build_feature_space(df, config, progress=True):
    """
    Fits the FeatureSpace on the whole training corpus and encodes it.

    Returns:
        tuple: (feature_space, feature_matrix indexed by Name)
    """
    feature_space = FeatureSpace.from_config(config, progress=progress)
    spectra = feature_space.parse_corpus(df)
    features = feature_space.fit_transform(spectra)

    summary = feature_space.summary()
    print(f"✓ Feature space fixed from {len(spectra)} compounds")
    print(f"  Canonical peaks: {summary['canonical_peaks']} (most frequent m/z: {summary['top_peak_mz']})")
    print(f"  Canonical losses: {summary['canonical_losses']} (most frequent: {summary['top_loss_values']})")
    print(f"  Feature columns: {summary['feature_columns']}")
    return feature_space, features


def split_corpus(df, config):
    train_df, test_df = corpus_split.stratified_split(
        df,
        stratify_by=config.stratify_by,
        ratio=config.train_test_split_ratio,
        seed=config.random_seed,
    )
    print(f"✓ Split {len(df)} compounds into {len(train_df)} train / {len(test_df)} test")
    return train_df['Name'].tolist(), test_df['Name'].tolist()


def fit_targets(features, properties, train_names, test_names, config):
    """
    Trains and evaluates one model per target.

    Returns:
        tuple: (models, metrics, test_predictions DataFrame)
    """
    models = {}
    metrics = {}
    test_predictions = pd.DataFrame(index=pd.Index(test_names, name='Name'))

    X_train = features.loc[train_names]
    X_test = features.loc[test_names]

    for target in config.targets:
        print(f"\n→ Training model for '{target}'")
        model = pm.train(
            X_train,
            properties[target],
            cv_folds=config.cv_folds,
            seed=config.random_seed,
            n_estimators=config.n_estimators,
            max_feature_subset_size=config.max_feature_subset_size,
            n_jobs=config.n_jobs,
        )
        models[target] = model

        test_labels = properties[target].reindex(test_names)
        if pd.to_numeric(test_labels).notna().any():
            metrics[target] = pm.evaluate(model, X_test, properties[target])
            print(f"✓ {target}: test R² {metrics[target]['r2']:.4f}, "
                  f"RMSE {metrics[target]['rmse']:.4f}, MAE {metrics[target]['mae']:.4f} "
                  f"(n={metrics[target]['n_samples']})")
        else:
            # model is kept; there is just nothing to score it against
            metrics[target] = {'r2': float('nan'), 'rmse': float('nan'), 'mae': float('nan'), 'n_samples': 0}
            print(f"⚠ Warning: no test compound has a value for '{target}'; test metrics not computed")

        test_predictions[target] = properties[target].reindex(test_names).values
        test_predictions[f'pred_{target}'] = pm.predict(model, X_test)

    return models, metrics, test_predictions.reset_index()


def train_property_models(df, config, progress=True):
    """
    Runs feature selection, split, training and evaluation on a training corpus.

    Returns:
        dict: 'model_package', 'features' (training feature table with the
        target columns appended) and 'test_predictions'.
    """
    feature_space, features = build_feature_space(df, config, progress=progress)
    properties = property_table(df, config.targets)
    train_names, test_names = split_corpus(df, config)
    models, metrics, test_predictions = fit_targets(features, properties, train_names, test_names, config)

    return {
        'model_package': pm.build_model_package(feature_space, models, metrics, config),
        'features': features.join(properties).reset_index(),
        'test_predictions': test_predictions,
    }


def add_config_arguments(parser):
    """Options that override PipelineConfig values, shared by every training entry point."""
    parser.add_argument('--config', type=str, default=None, help='JSON file with PipelineConfig values')
    parser.add_argument('--targets', nargs='+', default=None, help='Target property column(s)')

    # Feature selection parameters
    parser.add_argument('--top_peaks', type=int, default=None, help='N: top peaks per compound')
    parser.add_argument('--corpus_peaks', type=int, default=None, help='L: canonical peak set size')
    parser.add_argument('--top_losses', type=int, default=None, help='M: top peaks per compound for losses')
    parser.add_argument('--corpus_losses', type=int, default=None, help='K: canonical loss set size')
    parser.add_argument('--mz_decimals', type=int, default=None, help='Round parsed m/z to this many decimals')

    # Split and learner parameters
    parser.add_argument('--split_ratio', type=float, default=None, help='Training fraction of the split')
    stratify = parser.add_mutually_exclusive_group()
    stratify.add_argument('--stratify_by', type=str, default=None, help='Categorical column for the split')
    stratify.add_argument('--no_stratify', action='store_true', help='Plain shuffled split without categories')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--max_features', type=int, default=None, help='Largest feature subset size tried')
    parser.add_argument('--n_estimators', type=int, default=None, help='Trees per random forest')
    parser.add_argument('--cv_folds', type=int, default=None, help='Cross-validation folds for tuning')
    parser.add_argument('-j', '--n_jobs', type=int, default=None, help='Parallel workers for grid search')
    return parser


def config_from_args(args):
    """PipelineConfig from --config (or defaults) with command-line values on top."""
    config = PipelineConfig.from_json(args.config) if args.config else PipelineConfig()
    config = config.updated(
        targets=args.targets,
        top_per_compound_peaks=args.top_peaks,
        top_corpus_peaks=args.corpus_peaks,
        top_per_compound_losses=args.top_losses,
        top_corpus_losses=args.corpus_losses,
        mz_decimals=args.mz_decimals,
        train_test_split_ratio=args.split_ratio,
        stratify_by=args.stratify_by,
        random_seed=args.seed,
        max_feature_subset_size=args.max_features,
        n_estimators=args.n_estimators,
        cv_folds=args.cv_folds,
        n_jobs=args.n_jobs,
    )
    if args.no_stratify:
        # None overrides are skipped by updated(), so clear it explicitly
        config = replace(config, stratify_by=None)
    return config


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Train property models on a labelled spectrum corpus',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  python property_train.py train.csv --model_path model/property.joblib
  python property_train.py train.csv --targets C OSc --top_peaks 10 --top_losses 10
  python property_train.py train.csv --no_stratify --cv_folds 3
        """
    )
    parser.add_argument('input_path', type=str, help='Training corpus CSV (Name, MS, ChemFormula, ...)')
    parser.add_argument('--model_path', '-m', type=str, default='model/property.joblib',
                        help='Where to save the model package (default: model/property.joblib)')
    parser.add_argument('--result_path', type=str, default='results',
                        help='Directory for the feature table and test predictions')
    add_config_arguments(parser)

    args = parser.parse_args(argv)

    if not Path(args.input_path).exists():
        print(f"✗ Error: Input file not found: {args.input_path}")
        sys.exit(1)

    try:
        config = config_from_args(args)
        df = load_corpus(args.input_path)
        result = train_property_models(df, config)
    except (SpecPropError, ValueError) as e:
        print(f"✗ Error: {e}")
        sys.exit(1)

    result_path = Path(args.result_path)
    result_path.mkdir(parents=True, exist_ok=True)
    result['features'].to_csv(result_path / 'train_features.csv', index=False)
    result['test_predictions'].to_csv(result_path / 'test_predictions.csv', index=False)
    pm.save_model_package(result['model_package'], args.model_path)

    print("\n✓ Training completed successfully!")


if __name__ == "__main__":
    main()
