"""JSON Feed document rendering."""

import json
from typing import Any, Dict, Iterable, List

from feed_aggregator.models import JSON_FEED_VERSION, FeedInfo


class JsonFeedRenderer:
    """Builds a JSON Feed 1.1 document from feed info and items."""

    def __init__(self, info: FeedInfo):
        self.info = info
        self.items: List[Dict[str, Any]] = []

    def add(self, items: Iterable[Dict[str, Any]]) -> None:
        self.items.extend(items)

    def to_dict(self) -> Dict[str, Any]:
        return {"version": JSON_FEED_VERSION, **self.info.to_dict(), "items": self.items}

    def to_json(self) -> str:
        """Serialize the feed compactly, keeping field order."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))
