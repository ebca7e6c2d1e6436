import joblib
import numpy as np
import pandas as pd
from pathlib import Path
from sklearn.ensemble import RandomForestRegressor
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import GridSearchCV, KFold

from pipeline_errors import FeatureSpaceMismatchError, MissingPropertyError


MODEL_NAME = 'RandomForestRegressor'


def default_param_grid(n_features, max_feature_subset_size=30, steps=5):
    """
    Candidate ``max_features`` values: up to ``steps`` evenly spaced subset
    sizes from 1 to min(n_features, max_feature_subset_size).
    """
    upper = max(1, min(n_features, max_feature_subset_size))
    candidates = np.unique(np.linspace(1, upper, num=min(steps, upper)).round().astype(int))
    return {'max_features': [int(c) for c in candidates]}


def labelled_rows(feature_matrix: pd.DataFrame, labels: pd.Series, target=None):
    """
    Aligns labels to the matrix rows and drops compounds without a label.

    Compounds missing the target are excluded with a warning. Raises
    MissingPropertyError only if no compound is labelled.

    Returns:
        tuple: (X, y) restricted to labelled compounds.
    """
    target = target or labels.name or 'target'
    y = pd.to_numeric(labels.reindex(feature_matrix.index))
    mask = y.notna()

    if not mask.any():
        raise MissingPropertyError(f"No compound has a value for target '{target}'")

    excluded = feature_matrix.index[~mask].tolist()
    if excluded:
        print(f"⚠ Warning: {len(excluded)} compound(s) lack '{target}' and are excluded: {excluded[:10]}")

    return feature_matrix.loc[mask], y.loc[mask]


def train(train_matrix, labels, param_grid=None, cv_folds=5, seed=42, n_estimators=500,
          max_feature_subset_size=30, n_jobs=1):
    """
    Fits a random forest regressor, tuning ``max_features`` by k-fold grid search.

    Args:
        train_matrix (pd.DataFrame): Feature matrix indexed by Name.
        labels (pd.Series): Target values indexed by Name; NaN rows are excluded.
        param_grid (dict): GridSearchCV grid; defaults to default_param_grid().
        cv_folds (int): Folds for the grid search, reduced if fewer compounds are labelled.
        seed (int): Seed for fold shuffling and the forest.
        n_estimators (int): Trees per forest.
        max_feature_subset_size (int): Upper bound of the default grid.
        n_jobs (int): Parallel workers for the grid search.

    Returns:
        RandomForestRegressor: Best estimator refitted on all labelled rows.
    """
    X, y = labelled_rows(train_matrix, labels)

    if X.shape[1] == 0:
        raise ValueError("Feature matrix has no columns; the canonical feature sets are empty.")
    if len(X) < 2:
        raise MissingPropertyError(f"At least 2 labelled compounds are needed to train, got {len(X)}")

    if cv_folds > len(X):
        print(f"⚠ Warning: only {len(X)} labelled compounds; reducing CV folds from {cv_folds} to {len(X)}")
        cv_folds = len(X)

    if param_grid is None:
        param_grid = default_param_grid(X.shape[1], max_feature_subset_size)

    search = GridSearchCV(
        RandomForestRegressor(n_estimators=n_estimators, random_state=seed),
        param_grid=param_grid,
        cv=KFold(n_splits=cv_folds, shuffle=True, random_state=seed),
        scoring='neg_root_mean_squared_error',
        n_jobs=n_jobs,
        refit=True,
    )
    search.fit(X, y)

    print(f"  Best parameters: {search.best_params_}")
    print(f"  CV RMSE: {-search.best_score_:.4f}")
    return search.best_estimator_


def evaluate(model, feature_matrix, labels):
    """Held-out R², RMSE and MAE on the labelled rows of ``feature_matrix``."""
    X, y = labelled_rows(feature_matrix, labels)
    y_pred = predict(model, X)
    return {
        'r2': float(r2_score(y, y_pred)) if len(y) > 1 else float('nan'),
        'rmse': float(np.sqrt(mean_squared_error(y, y_pred))),
        'mae': float(mean_absolute_error(y, y_pred)),
        'n_samples': int(len(y)),
    }


def predict(model, feature_matrix):
    """
    Applies a trained model to a feature matrix.

    The matrix must have been built from the same FeatureSpace the model was
    trained on; any difference in columns or their order is refused.

    Raises:
        FeatureSpaceMismatchError
    """
    expected = getattr(model, 'feature_names_in_', None)
    if expected is not None:
        actual = [str(col) for col in feature_matrix.columns]
        if actual != [str(col) for col in expected]:
            raise FeatureSpaceMismatchError(
                f"Model expects {len(expected)} feature columns, matrix has {len(actual)} "
                f"or a different column order"
            )
    return model.predict(feature_matrix)


def build_model_package(feature_space, models, metrics=None, config=None):
    return {
        'model_name': MODEL_NAME,
        'feature_space': feature_space,
        'feature_columns': feature_space.columns,
        'models': models,
        'metrics': metrics or {},
        'config': config.to_dict() if hasattr(config, 'to_dict') else config,
    }


def save_model_package(model_package, model_path):
    model_path = Path(model_path)
    model_path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(model_package, model_path)
    print(f"✓ Model package saved to: {model_path}")


def load_model_package(model_path):
    """
    Load the model package (feature space, per-target models, metrics) from a joblib file.
    """
    model_package = joblib.load(model_path)
    print(f"✓ Model loaded successfully from: {model_path}")
    print(f"  Model type: {model_package['model_name']}")
    print(f"  Feature columns: {len(model_package['feature_columns'])}")
    for target, metrics in model_package.get('metrics', {}).items():
        print(f"  {target}: test R² {metrics['r2']:.4f}, RMSE {metrics['rmse']:.4f}")
    return model_package


def predict_properties(model_package, feature_matrix):
    """
    Predicts every target in the package for the rows of ``feature_matrix``.

    Returns:
        pd.DataFrame: Indexed by Name, one 'pred_<target>' column per target.
    """
    model_package['feature_space'].check_columns(feature_matrix)
    predictions = pd.DataFrame(index=feature_matrix.index)
    for target, model in model_package['models'].items():
        predictions[f'pred_{target}'] = predict(model, feature_matrix)
    return predictions
