from .base import Base
from .event import RegistryEvent, RegistryEventType
from .domain import ClaimStatus, DomainRecord
from .trend_score import TrendScore
from .ai_insight import AiInsight
from .api_usage import ApiUsage

__all__ = [
    "Base",
    "RegistryEvent",
    "RegistryEventType",
    "DomainRecord",
    "ClaimStatus",
    "TrendScore",
    "AiInsight",
    "ApiUsage",
]
