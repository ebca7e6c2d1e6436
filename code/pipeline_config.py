"""
Configuration for the property prediction pipeline.

Holds every tunable parameter of feature selection, splitting and model
training, with validation, and JSON loading so a run can be reproduced from
a saved file.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class PipelineConfig:
    """
    Parameters of one training + prediction run.

    Feature selection uses N/L for peaks and M/K for neutral losses. The
    seed drives both the train/test split and the random forest, so a run
    is reproducible end to end.
    """

    # Feature selection
    top_per_compound_peaks: int = 10      # N
    top_corpus_peaks: int = 100           # L
    top_per_compound_losses: int = 10     # M
    top_corpus_losses: int = 100          # K
    mz_decimals: Optional[int] = None
    loss_decimals: int = 6
    relative_intensity: bool = True

    # Split
    stratify_by: Optional[str] = 'Class'
    train_test_split_ratio: float = 0.8
    random_seed: int = 42

    # Learner
    targets: List[str] = field(default_factory=lambda: ['C'])
    max_feature_subset_size: int = 30
    n_estimators: int = 500
    cv_folds: int = 5
    n_jobs: int = 1

    def __post_init__(self):
        """Validate parameters after initialization."""
        self.validate()

    def validate(self) -> None:
        for name in ('top_per_compound_peaks', 'top_corpus_peaks', 'top_per_compound_losses',
                     'top_corpus_losses', 'max_feature_subset_size', 'n_estimators'):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

        if not (0.0 < self.train_test_split_ratio < 1.0):
            raise ValueError(f"train_test_split_ratio must be between 0.0 and 1.0, got {self.train_test_split_ratio}")

        if self.cv_folds < 2:
            raise ValueError(f"cv_folds must be at least 2, got {self.cv_folds}")

        if self.loss_decimals is not None and self.loss_decimals < 0:
            raise ValueError(f"loss_decimals must be non-negative, got {self.loss_decimals}")

        if self.mz_decimals is not None and self.mz_decimals < 0:
            raise ValueError(f"mz_decimals must be non-negative, got {self.mz_decimals}")

        if not self.targets:
            raise ValueError("At least one target property is required")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration key(s): {unknown}")
        return cls(**data)

    @classmethod
    def from_json(cls, path) -> 'PipelineConfig':
        with open(Path(path), 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))

    def to_json(self, path) -> None:
        with open(Path(path), 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)

    def updated(self, **overrides) -> 'PipelineConfig':
        """Copy with the given non-None values replaced, e.g. CLI flags over a file."""
        data = self.to_dict()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return self.from_dict(data)
