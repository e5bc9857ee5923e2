"""
Rivora ML score model.

Model-input building, training-sample sources, and the ModelRegistry that
owns the torch risk/health regressors.
"""

from backend_rivora.ml.feature_builder import MODEL_INPUT_NAMES, to_model_input
from backend_rivora.ml.model_registry import ModelRegistry, ModelState, TrainingReport
from backend_rivora.ml.training_data import JsonTrainingSampleSource, TrainingSampleSource

__all__ = [
    "MODEL_INPUT_NAMES",
    "to_model_input",
    "ModelRegistry",
    "ModelState",
    "TrainingReport",
    "JsonTrainingSampleSource",
    "TrainingSampleSource",
]
