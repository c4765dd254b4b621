"""
Discussion health score: a 0-100 display metric derived from an analysis.
"""

import math

from threadlens.models.schemas import AnalysisResult

COMPONENT_WEIGHT = 0.25


def _sentiment_balance(analysis: AnalysisResult) -> float:
    overall = analysis.sentiment.overall
    if overall == "mixed":
        return 80
    if overall == "neutral":
        return 70
    if analysis.sentiment.score > 70 or analysis.sentiment.score < 30:
        return 60
    return 75


def _consensus_health(analysis: AnalysisResult) -> float:
    level = analysis.consensus.agreement_level
    if level > 80:
        return 70
    if level > 50:
        return 85
    if level > 30:
        return 75
    return 60


def _engagement_ratio(analysis: AnalysisResult) -> float:
    metadata = analysis.metadata
    return min(100.0, metadata.analyzed_comments / max(1, metadata.total_comments) * 100)


def _diversity_score(analysis: AnalysisResult) -> float:
    return min(100, len(analysis.themes) * 20 + len(analysis.key_opinions) * 15)


def calculate_health_score(analysis: AnalysisResult) -> int:
    """
    Combine sentiment balance, consensus health, engagement ratio and
    theme/opinion diversity with equal weights into a score in [0, 100].

    Rounds half up, so 70.5 becomes 71.
    """
    total = (
        _sentiment_balance(analysis) * COMPONENT_WEIGHT
        + _consensus_health(analysis) * COMPONENT_WEIGHT
        + _engagement_ratio(analysis) * COMPONENT_WEIGHT
        + _diversity_score(analysis) * COMPONENT_WEIGHT
    )
    score = math.floor(total + 0.5)
    return min(100, max(0, score))


def health_label(score: int) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Needs Attention"
