"""
CardScience services.

Crawl orchestration and the per-card upsert pipeline.
"""

from cardscience.services.crawler import CrawlReport, Crawler, PageReport
from cardscience.services.runner import FailurePolicy, ItemOutcome, RunReport, run_sequential
from cardscience.services.upsert import UpsertPipeline, UpsertResult, UpsertState

__all__ = [
    "CrawlReport",
    "Crawler",
    "FailurePolicy",
    "ItemOutcome",
    "PageReport",
    "RunReport",
    "UpsertPipeline",
    "UpsertResult",
    "UpsertState",
    "run_sequential",
]
