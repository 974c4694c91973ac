"""
Pydantic models for dashboard statistics.
"""

from typing import Dict

from pydantic import BaseModel, Field

from .initiative import CamelModel


class Statistics(CamelModel):
    """Aggregate snapshot computed from every stored initiative.

    ``active_initiatives`` and ``completed_initiatives`` need not add up
    to ``total_initiatives``: records with any other status only count
    toward the total.
    """

    total_initiatives: int = 0
    active_initiatives: int = 0
    completed_initiatives: int = 0
    total_beneficiaries: int = 0
    total_budget: int = 0
    category_counts: Dict[str, int] = Field(default_factory=dict, alias="categories")


class StatisticsResponse(BaseModel):
    stats: Statistics
