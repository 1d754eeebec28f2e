"""Cache layer package for completed report results."""

from .result_cache import ReportResultCache

__all__ = ["ReportResultCache"]
