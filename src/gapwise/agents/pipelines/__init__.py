"""Pipeline orchestration modules."""

from gapwise.agents.pipelines.analyze import (
    AnalysisInputs,
    AnalysisPipeline,
    AnalysisPipelineConfig,
    GapAnalysisResult,
)

__all__ = [
    "AnalysisInputs",
    "AnalysisPipeline",
    "AnalysisPipelineConfig",
    "GapAnalysisResult",
]
