"""
Error taxonomy for the spectrum -> feature table -> property model pipeline.

Every error is also a ValueError so callers that already guard input
parsing with ``except ValueError`` keep working.
"""


class SpecPropError(ValueError):
    """Base class for all pipeline errors."""

    def __init__(self, message, name=None):
        self.name = name
        if name is not None:
            message = f"[{name}] {message}"
        super().__init__(message)


class MalformedSpectrumError(SpecPropError):
    """A peak token could not be read as '<mz> <intensity>'."""


class UnparseableFormulaError(SpecPropError):
    """A chemical formula string could not be tokenized."""


class UndefinedRatioError(SpecPropError):
    """An elemental ratio was requested for a formula with zero carbon."""


class MissingPropertyError(SpecPropError):
    """The target property is absent for a compound or for the whole corpus."""


class FeatureSpaceMismatchError(SpecPropError):
    """A feature matrix does not carry the columns the model was trained on."""


class InsufficientCategoryError(SpecPropError):
    """A stratification category is too small to split proportionally."""
