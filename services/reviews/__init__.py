"""
Review ledger, trust scores and tool verdicts.
"""
from .ledger import ReviewLedger
from .rules import DEFAULT_RULES, ScoringRules, TrustRules, VerdictRules
from .trust_score import TrustScoreEngine
from .verdict import VerdictAggregator

__all__ = [
    "DEFAULT_RULES",
    "ReviewLedger",
    "ScoringRules",
    "TrustRules",
    "TrustScoreEngine",
    "VerdictAggregator",
    "VerdictRules",
]
