import datetime as dt
from typing import Any, Dict, Optional
from pydantic import Field, field_serializer
from src.models.base import CamelModel


class DiscussionPost(CamelModel):
    title: str = ""
    score: int = 0
    comment_count: int = 0
    created_at: Optional[dt.datetime] = None
    channel: str = ""
    url: str = ""
    selftext: str = Field("", description="Post body; empty for link posts")

    @field_serializer("created_at")
    def serialize_dt(self, value: Optional[dt.datetime]):
        return value.isoformat() if value else None

    @classmethod
    def from_listing_child(cls, child: Dict[str, Any], channel: str) -> "DiscussionPost":
        """Map one `children[].data` entry of a Reddit listing."""
        data = child.get("data", child)
        created = data.get("created_utc")
        permalink = data.get("permalink") or ""
        return cls(
            title=data.get("title") or "",
            score=int(data.get("score") or 0),
            comment_count=int(data.get("num_comments") or 0),
            created_at=dt.datetime.fromtimestamp(float(created), dt.UTC) if created else None,
            channel=data.get("subreddit") or channel,
            url=f"https://www.reddit.com{permalink}" if permalink else (data.get("url") or ""),
            selftext=data.get("selftext") or "",
        )
