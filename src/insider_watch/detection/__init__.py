"""
Trade aggregation, suspicion scoring and summary statistics.
"""

from .aggregator import TradeAggregator
from .engine import InsiderDetectionEngine, analyze_batch, calculate_profit, score_trade
from .pipeline import AnalysisReport, DetectionPipeline
from .stats import RecencyBasis, summarize_analyses, summarize_records

__all__ = [
    "AnalysisReport",
    "DetectionPipeline",
    "InsiderDetectionEngine",
    "RecencyBasis",
    "TradeAggregator",
    "analyze_batch",
    "calculate_profit",
    "score_trade",
    "summarize_analyses",
    "summarize_records",
]
