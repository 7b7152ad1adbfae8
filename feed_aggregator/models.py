"""Data models for cached feed items."""

import copy
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator, model_validator

from feed_aggregator.clock import ensure_utc

JSON_FEED_VERSION = "https://jsonfeed.org/version/1.1"

DATE_PUBLISHED = "date_published"
DATE_MODIFIED = "date_modified"


class CacheEntry(BaseModel):
    """One cached item plus its expiry and date approximation metadata."""

    item: Dict[str, Any]
    expire_at: Optional[datetime] = None
    approximate_date: bool = False

    @field_validator("item")
    @classmethod
    def validate_item_id(cls, v):
        if not isinstance(v.get("id"), str):
            raise ValueError("Item must have a string 'id'")
        return v

    @field_validator("expire_at")
    @classmethod
    def validate_expire_at(cls, v):
        return ensure_utc(v) if v is not None else None

    @property
    def item_id(self) -> str:
        return self.item["id"]

    def is_expired(self, now: datetime) -> bool:
        """Check whether the entry is logically dead at ``now``."""
        return self.expire_at is not None and self.expire_at <= now


class Submission(CacheEntry):
    """Item submitted to the aggregator.

    The item is deep-copied so the aggregator never mutates caller input.
    """

    @field_validator("item", mode="before")
    @classmethod
    def copy_item(cls, v):
        return copy.deepcopy(v)


class FeedInfo(BaseModel):
    """Top-level JSON Feed fields, excluding ``version`` and ``items``.

    Fields are rendered in the order they were given. Unset or null standard
    fields are left out; extra fields are passed through as given.
    """

    model_config = ConfigDict(extra="allow")

    title: str
    home_page_url: Optional[str] = None
    feed_url: Optional[str] = None
    description: Optional[str] = None
    user_comment: Optional[str] = None
    next_url: Optional[str] = None
    icon: Optional[str] = None
    favicon: Optional[str] = None
    language: Optional[str] = None
    expired: Optional[bool] = None
    authors: Optional[List[Dict[str, Any]]] = None
    hubs: Optional[List[Dict[str, Any]]] = None

    _field_order: List[str] = PrivateAttr(default_factory=list)

    @model_validator(mode="wrap")
    @classmethod
    def remember_field_order(cls, data, handler):
        info = handler(data)
        if isinstance(data, dict):
            info._field_order = list(data)
        return info

    def to_dict(self) -> Dict[str, Any]:
        values = self.model_dump()
        extra = self.model_extra or {}
        order = [name for name in self._field_order if name in values]
        order += [name for name in values if name not in order]
        return {
            name: values[name]
            for name in order
            if values[name] is not None or name in extra
        }
