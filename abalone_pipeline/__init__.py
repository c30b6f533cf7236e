"""
Abalone age regression with SageMaker's built-in XGBoost: data prep, training, hosting and teardown.
"""

from abalone_pipeline.config import PipelineConfig
from abalone_pipeline.pipeline import PipelineResult, run_pipeline

__all__ = ["PipelineConfig", "PipelineResult", "run_pipeline"]
