"""Study-level analysis: configuration, orchestration and memoization.

Examples
--------
>>> from cardsort_analysis.analysis import AnalysisConfig, StudyAnalyzer
>>>
>>> analyzer = StudyAnalyzer(AnalysisConfig(linkage="complete"))
>>> result = analyzer.analyze(study.cards, study.sessions)
>>> print(result.leaf_order)
"""

from .analysis_config import AnalysisConfig
from .study_analyzer import (
    AnalysisResult,
    StudyAnalyzer,
    analyze_study,
    compute_analysis_key,
    summarize_result,
)

__all__ = [
    "AnalysisConfig",
    "AnalysisResult",
    "StudyAnalyzer",
    "analyze_study",
    "compute_analysis_key",
    "summarize_result",
]
