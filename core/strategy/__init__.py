"""Strategy tables and advice."""

from core.strategy.basic import BasicStrategy, Action
from core.strategy.advisor import Advice, Advisor, BasicStrategyAdvisor

__all__ = [
    "BasicStrategy",
    "Action",
    "Advice",
    "Advisor",
    "BasicStrategyAdvisor",
]
