"""
Spectrum Property Prediction Pipeline - All-in-One

This pipeline trains property models on a labelled reference corpus and
applies them to an unknown corpus in a single run:
0. Load Data - Read the training and unknown corpora
1. Feature Space - Select canonical peaks and neutral losses from the training corpus
2. Split - Stratified train/test partition of the training corpus
3. Train - One random forest per target property, evaluated on the test partition
4. Predict - Encode the unknown corpus with the same feature space and predict

Usage:
    python property_pipeline.py train.csv unknown.csv --result_path results/
    python property_pipeline.py train.csv unknown.csv --targets C OSc -j 4
"""

import argparse
import sys
from pathlib import Path

import property_model as pm
import property_train as pt
from pipeline_config import PipelineConfig
from pipeline_errors import SpecPropError
from property_predict import predict_unknowns


class PropertyPredictionPipeline:
    """Main pipeline orchestrator"""

    def __init__(self, train_path, unknown_path, result_path, config=None, model_path=None):
        """
        Initialize the pipeline

        Args:
            train_path: Labelled training corpus CSV.
            unknown_path: Unknown corpus CSV to predict.
            result_path: Output directory.
            config: PipelineConfig; defaults are used when None.
            model_path: Where to save the model package (default: <result_path>/property.joblib).
        """
        self.train_path = Path(train_path)
        self.unknown_path = Path(unknown_path)
        self.result_path = Path(result_path)
        self.config = config or PipelineConfig()

        self.result_path.mkdir(parents=True, exist_ok=True)

        self.model_path = Path(model_path) if model_path else self.result_path / "property.joblib"
        self.train_features_path = self.result_path / "train_features.csv"
        self.unknown_features_path = self.result_path / "unknown_features.csv"
        self.test_predictions_path = self.result_path / "test_predictions.csv"
        self.predictions_path = self.result_path / "predictions.csv"
        self.config_path = self.result_path / "config.json"

        self.train_df = None
        self.unknown_df = None
        self.feature_space = None
        self.train_features = None
        self.properties = None
        self.train_names = None
        self.test_names = None
        self.model_package = None
        self.predictions = None

        self.stats = {
            'train_compounds': 0,
            'unknown_compounds': 0,
            'feature_columns': 0,
            'unmatched_unknowns': 0,
        }

    def print_header(self, text):
        """Print formatted section header"""
        print("\n" + "=" * 80)
        print(f"  {text}")
        print("=" * 80)

    def step0_load_data(self):
        """Step 0: Load training and unknown corpora"""
        self.print_header("STEP 0: LOAD DATA")

        self.train_df = pt.load_corpus(self.train_path)
        self.unknown_df = pt.load_corpus(self.unknown_path)
        self.stats['train_compounds'] = len(self.train_df)
        self.stats['unknown_compounds'] = len(self.unknown_df)

        print(f"\n✓ Step 0 complete: {len(self.train_df)} training / {len(self.unknown_df)} unknown compounds")

    def step1_feature_space(self):
        """Step 1: Fix the canonical feature space from the training corpus"""
        self.print_header("STEP 1: FEATURE SPACE")

        self.feature_space, self.train_features = pt.build_feature_space(self.train_df, self.config)
        self.properties = pt.property_table(self.train_df, self.config.targets)
        self.stats['feature_columns'] = len(self.feature_space.columns)

        self.train_features.join(self.properties).reset_index().to_csv(self.train_features_path, index=False)
        print(f"\n✓ Step 1 complete: training feature table saved to {self.train_features_path.name}")

    def step2_split(self):
        """Step 2: Stratified train/test split"""
        self.print_header("STEP 2: TRAIN/TEST SPLIT")

        self.train_names, self.test_names = pt.split_corpus(self.train_df, self.config)
        print("\n✓ Step 2 complete")

    def step3_train(self):
        """Step 3: Train and evaluate one model per target"""
        self.print_header("STEP 3: TRAIN PROPERTY MODELS")

        models, metrics, test_predictions = pt.fit_targets(
            self.train_features, self.properties, self.train_names, self.test_names, self.config
        )
        self.model_package = pm.build_model_package(self.feature_space, models, metrics, self.config)

        test_predictions.to_csv(self.test_predictions_path, index=False)
        pm.save_model_package(self.model_package, self.model_path)
        print(f"\n✓ Step 3 complete: {len(models)} model(s) trained")

    def step4_predict(self):
        """Step 4: Predict the unknown corpus with the training feature space"""
        self.print_header("STEP 4: PREDICT UNKNOWN COMPOUNDS")

        # same FeatureSpace object as step 1, never refitted on unknown data
        self.predictions, unknown_features = predict_unknowns(self.model_package, self.unknown_df)
        self.stats['unmatched_unknowns'] = int((~unknown_features.any(axis=1)).sum())

        self.predictions.to_csv(self.predictions_path, index=False)
        unknown_features.reset_index().to_csv(self.unknown_features_path, index=False)
        print(f"\n✓ Step 4 complete: predictions saved to {self.predictions_path.name}")

    def print_summary(self):
        """Print run statistics and test metrics"""
        self.print_header("SUMMARY")

        print(f"   Training compounds: {self.stats['train_compounds']}")
        print(f"   Unknown compounds: {self.stats['unknown_compounds']}")
        print(f"   Feature columns: {self.stats['feature_columns']}")
        print(f"   Unknowns with no canonical feature: {self.stats['unmatched_unknowns']}")
        for target, metrics in self.model_package['metrics'].items():
            print(f"   {target}: R² {metrics['r2']:.4f}  RMSE {metrics['rmse']:.4f}  MAE {metrics['mae']:.4f}")
        print("\n" + "=" * 80)

    def run(self):
        """Run the complete pipeline"""
        print("\n" + "=" * 80)
        print("  SPECTRUM PROPERTY PREDICTION PIPELINE")
        print("=" * 80)
        print(f"\nTraining corpus: {self.train_path}")
        print(f"Unknown corpus: {self.unknown_path}")
        print(f"Result directory: {self.result_path}")
        print(f"Targets: {', '.join(self.config.targets)}")

        self.config.to_json(self.config_path)

        steps = [
            (self.step0_load_data, "Step 0: Load Data"),
            (self.step1_feature_space, "Step 1: Feature Space"),
            (self.step2_split, "Step 2: Split"),
            (self.step3_train, "Step 3: Train"),
            (self.step4_predict, "Step 4: Predict"),
        ]
        for step, step_name in steps:
            try:
                step()
            except (SpecPropError, ValueError) as e:
                print(f"\n✗ Pipeline failed at {step_name}: {e}")
                return False

        self.print_summary()

        self.print_header("PIPELINE COMPLETE")
        print(f"\nAll results saved to: {self.result_path}")
        print(f"Final output: {self.predictions_path}")
        print("\n✓ Success!\n")
        return True


def build_parser():
    parser = argparse.ArgumentParser(
        description='Spectrum Property Prediction Pipeline',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example Usage:
  python run.py train.csv unknown.csv --result_path results/
  python run.py train.csv unknown.csv --targets C OSc --top_peaks 10 --top_losses 10
  python run.py train.csv unknown.csv --config config.json
        """
    )

    # Required arguments
    parser.add_argument('train_path', type=str, help='Labelled training corpus CSV')
    parser.add_argument('unknown_path', type=str, help='Unknown corpus CSV')

    # Optional arguments
    parser.add_argument('--result_path', type=str, default='results', help='Directory to save all results')
    parser.add_argument('--model_path', type=str, default=None, help='Path to save the model package')
    pt.add_config_arguments(parser)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    for path in (args.train_path, args.unknown_path):
        if not Path(path).exists():
            print(f"✗ Error: Input file not found: {path}")
            sys.exit(1)

    try:
        config = pt.config_from_args(args)
    except ValueError as e:
        print(f"✗ Error: Invalid configuration: {e}")
        sys.exit(1)

    try:
        pipeline = PropertyPredictionPipeline(
            train_path=args.train_path,
            unknown_path=args.unknown_path,
            result_path=args.result_path,
            config=config,
            model_path=args.model_path,
        )
        success = pipeline.run()
        sys.exit(0 if success else 1)

    except KeyboardInterrupt:
        print("\n\n✗ Pipeline interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
