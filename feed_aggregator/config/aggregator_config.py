"""Configuration settings for the feed aggregator."""

import os
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from feed_aggregator.errors import ConfigurationError

ENV_PREFIX = "FEED_AGGREGATOR_"


class ExpiredSubmissionPolicy(str, Enum):
    """What to do with a submission whose expiry is already past."""

    SKIP = "skip"
    REJECT = "reject"


@dataclass
class AggregatorConfig:
    """Configuration for the feed aggregator.

    Attributes:
        expired_submission_policy: Skip or reject submissions that already expired
        max_write_retries: Retries per failed atomic write before giving up
        retry_delay: Base delay in seconds between write retries (doubles per attempt)
        db_path: Path to the SQLite cache database
        log_level: Logging level name
        json_logs: Render logs as JSON instead of console output
    """

    expired_submission_policy: ExpiredSubmissionPolicy = ExpiredSubmissionPolicy.SKIP
    max_write_retries: int = 2
    retry_delay: float = 0.5
    db_path: str = "./data/feed_cache.db"
    log_level: str = "INFO"
    json_logs: bool = False

    def __post_init__(self) -> None:
        try:
            self.expired_submission_policy = ExpiredSubmissionPolicy(
                self.expired_submission_policy
            )
        except ValueError:
            raise ConfigurationError(
                f"Unknown expired submission policy: {self.expired_submission_policy}",
                details={"allowed": [p.value for p in ExpiredSubmissionPolicy]},
            )
        if self.max_write_retries < 0:
            raise ConfigurationError("max_write_retries must not be negative")
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay must not be negative")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "AggregatorConfig":
        """Create an AggregatorConfig instance from a dictionary.

        Args:
            config_dict: Dictionary containing configuration values

        Returns:
            AggregatorConfig instance with values from dictionary
        """
        return cls(**{k: v for k, v in config_dict.items() if k in cls.__dataclass_fields__})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AggregatorConfig":
        """Create an AggregatorConfig from ``FEED_AGGREGATOR_*`` environment variables.

        Args:
            environ: Mapping to read from, defaults to ``os.environ``

        Returns:
            AggregatorConfig instance
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for field in fields(cls):
            raw = environ.get(ENV_PREFIX + field.name.upper())
            if raw is None:
                continue
            try:
                if field.type is bool:
                    values[field.name] = raw.strip().lower() in ("1", "true", "yes", "on")
                elif field.type is int:
                    values[field.name] = int(raw)
                elif field.type is float:
                    values[field.name] = float(raw)
                else:
                    values[field.name] = raw
            except ValueError:
                raise ConfigurationError(
                    f"Invalid value for {ENV_PREFIX}{field.name.upper()}: {raw}"
                )
        return cls.from_dict(values)
