"""Configuration management for the feed aggregator."""

from .aggregator_config import AggregatorConfig, ExpiredSubmissionPolicy

__all__ = ["AggregatorConfig", "ExpiredSubmissionPolicy"]
