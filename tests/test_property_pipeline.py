import numpy as np
import pandas as pd
import pytest

import property_model as pm
import property_predict
import property_train as pt
from pipeline_errors import MissingPropertyError
from property_pipeline import PropertyPredictionPipeline, main
from property_predict import predict_unknowns


@pytest.fixture
def corpus_files(tmp_path, training_corpus, unknown_corpus):
    train_path = tmp_path / 'train.csv'
    unknown_path = tmp_path / 'unknown.csv'
    training_corpus.to_csv(train_path, index=False)
    unknown_corpus.to_csv(unknown_path, index=False)
    return train_path, unknown_path


def test_pipeline_end_to_end(tmp_path, corpus_files, small_config):
    train_path, unknown_path = corpus_files
    result_path = tmp_path / 'results'

    pipeline = PropertyPredictionPipeline(train_path, unknown_path, result_path, config=small_config)
    assert pipeline.run()

    predictions = pd.read_csv(result_path / 'predictions.csv')
    assert list(predictions.columns) == ['Name', 'RI', 'pred_C']
    assert predictions['Name'].tolist() == ['unk_alkane', 'unk_alcohol', 'unk_unrelated']
    assert predictions['RI'].tolist() == [600.0, 770.0, 1500.0]
    assert np.isfinite(predictions['pred_C']).all()

    for name in ('config.json', 'train_features.csv', 'test_predictions.csv',
                 'property.joblib', 'unknown_features.csv'):
        assert (result_path / name).exists()

    assert pipeline.stats['unmatched_unknowns'] == 1
    assert pipeline.stats['feature_columns'] == len(pipeline.feature_space.columns)


def test_unknowns_are_encoded_with_training_columns(tmp_path, corpus_files, small_config):
    train_path, unknown_path = corpus_files
    result_path = tmp_path / 'results'
    PropertyPredictionPipeline(train_path, unknown_path, result_path, config=small_config).run()

    train_features = pd.read_csv(result_path / 'train_features.csv')
    unknown_features = pd.read_csv(result_path / 'unknown_features.csv')
    assert list(unknown_features.columns) == [col for col in train_features.columns if col != 'C']

    unrelated = unknown_features.set_index('Name').loc['unk_unrelated']
    assert not unrelated.astype(float).any()


def test_split_partitions_training_corpus(training_corpus, small_config):
    train_names, test_names = pt.split_corpus(training_corpus, small_config)
    assert len(train_names) == 32
    assert len(test_names) == 8
    assert set(train_names).isdisjoint(test_names)


def test_saved_package_predicts_like_in_memory_package(tmp_path, training_corpus, unknown_corpus, small_config):
    result = pt.train_property_models(training_corpus, small_config, progress=False)
    path = tmp_path / 'property.joblib'
    pm.save_model_package(result['model_package'], path)

    in_memory, _ = predict_unknowns(result['model_package'], unknown_corpus)
    restored, _ = predict_unknowns(pm.load_model_package(path), unknown_corpus)

    pd.testing.assert_frame_equal(in_memory, restored)


def test_vapor_pressure_target_skips_unlabelled_compounds(training_corpus, small_config, capsys):
    training_corpus.loc[training_corpus.index[:3], 'VP'] = np.nan
    config = small_config.updated(targets=['VP'])

    result = pt.train_property_models(training_corpus, config, progress=False)

    assert set(result['model_package']['models']) == {'VP'}
    assert 'pred_VP' in result['test_predictions'].columns
    assert "excluded" in capsys.readouterr().out


def test_formula_targets_are_derived(training_corpus):
    properties = pt.property_table(training_corpus, ['C', 'OC'])
    assert list(properties.columns) == ['C', 'OC']
    assert properties.loc['alkane_1', 'C'] == 5
    assert properties.loc['alkane_1', 'OC'] == 0
    assert properties.loc['alcohol_0', 'OC'] == pytest.approx(0.25)


def test_missing_target_is_reported(tmp_path, corpus_files, small_config):
    with pytest.raises(MissingPropertyError):
        pt.property_table(pd.read_csv(corpus_files[0]), ['Density'])

    train_path, unknown_path = corpus_files
    config = small_config.updated(targets=['Density'])
    pipeline = PropertyPredictionPipeline(train_path, unknown_path, tmp_path / 'results', config=config)
    assert not pipeline.run()


def test_pipeline_main_exit_codes(tmp_path, corpus_files):
    train_path, unknown_path = corpus_files
    argv = [str(train_path), str(unknown_path), '--result_path', str(tmp_path / 'cli'),
            '--top_peaks', '3', '--corpus_peaks', '20', '--top_losses', '4', '--corpus_losses', '20',
            '--max_features', '5', '--n_estimators', '10', '--cv_folds', '2', '--seed', '0']

    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 0
    assert (tmp_path / 'cli' / 'predictions.csv').exists()

    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / 'absent.csv'), str(unknown_path)])
    assert excinfo.value.code == 1


def test_train_and_predict_commands(tmp_path, corpus_files, small_config):
    train_path, unknown_path = corpus_files
    config_path = tmp_path / 'config.json'
    model_path = tmp_path / 'model' / 'property.joblib'
    output_path = tmp_path / 'out' / 'predictions.csv'
    small_config.to_json(config_path)

    pt.main([str(train_path), '--model_path', str(model_path), '--result_path', str(tmp_path / 'train'),
             '--config', str(config_path), '--targets', 'C', 'OC'])
    assert model_path.exists()
    assert set(pm.load_model_package(model_path)['models']) == {'C', 'OC'}

    property_predict.main([str(unknown_path), str(model_path), '-o', str(output_path)])
    assert pd.read_csv(output_path)['Name'].tolist() == ['unk_alkane', 'unk_alcohol', 'unk_unrelated']


def test_target_without_test_labels_keeps_trained_model(training_corpus, small_config, capsys):
    config = small_config.updated(targets=['VP'])
    _, test_names = pt.split_corpus(training_corpus, config)
    training_corpus.loc[training_corpus['Name'].isin(test_names), 'VP'] = np.nan

    result = pt.train_property_models(training_corpus, config, progress=False)

    package = result['model_package']
    assert set(package['models']) == {'VP'}
    assert package['metrics']['VP']['n_samples'] == 0
    assert np.isnan(package['metrics']['VP']['rmse'])
    assert np.isfinite(result['test_predictions']['pred_VP']).all()
    assert "no test compound has a value for 'VP'" in capsys.readouterr().out


def test_train_command_accepts_learner_flags_and_no_stratify(tmp_path, training_corpus, small_config):
    train_path = tmp_path / 'unclassified.csv'
    training_corpus.drop(columns=['Class']).to_csv(train_path, index=False)
    config_path = tmp_path / 'config.json'
    model_path = tmp_path / 'property.joblib'
    small_config.to_json(config_path)

    pt.main([str(train_path), '--model_path', str(model_path), '--result_path', str(tmp_path / 'train'),
             '--config', str(config_path), '--no_stratify',
             '--n_estimators', '5', '--cv_folds', '3', '--mz_decimals', '1'])

    saved = pm.load_model_package(model_path)['config']
    assert saved['stratify_by'] is None
    assert saved['n_estimators'] == 5
    assert saved['cv_folds'] == 3
    assert saved['mz_decimals'] == 1


def test_pipeline_parser_shares_training_options():
    from property_pipeline import build_parser

    args = build_parser().parse_args(['train.csv', 'unknown.csv', '--no_stratify', '--cv_folds', '4'])
    config = pt.config_from_args(args)
    assert config.stratify_by is None
    assert config.cv_folds == 4

    args = build_parser().parse_args(['train.csv', 'unknown.csv', '--stratify_by', 'Superclass'])
    assert pt.config_from_args(args).stratify_by == 'Superclass'
