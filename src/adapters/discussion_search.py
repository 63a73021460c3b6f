"""
Discussion Search Adapter

Searches a fixed list of Reddit communities for posts about the idea.
Channel-level failures are skipped; only bad credentials abort the search.
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from loguru import logger

from src.adapters.base import SourceAdapter
from src.config import Settings
from src.models.discussion import DiscussionPost
from src.models.source_result import SourceResult
from src.utils.errors import AnalysisError, AuthError, RateLimitedError, SourceNotFoundError
from src.utils.resilient_http import ResilientHttpClient, RetryPolicy


class DiscussionSearchAdapter(SourceAdapter):
    """
    Reddit search across the configured channels.

    The bearer token is cached on the instance only. Adapters are built per
    analysis, so every analysis authenticates from scratch.
    """

    name = "discussion_search"

    def __init__(
        self,
        http: ResilientHttpClient,
        settings: Settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        budget_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.http = http
        self.settings = settings
        self._sleep = sleep
        self._clock = clock
        # Matches the deadline the orchestrator puts around the whole search
        self.budget_seconds = (
            budget_seconds if budget_seconds is not None else settings.data_fetch_timeout_seconds
        )
        self._token: Optional[str] = None
        # A 429 on one channel must not be retried in place; the wait happens before the next channel
        self._search_policy = RetryPolicy.from_settings(settings, retry_on_rate_limit=False)

    @property
    def _user_agent(self) -> Dict[str, str]:
        return {"User-Agent": self.settings.reddit_user_agent}

    async def get_token(self) -> str:
        if self._token:
            return self._token

        response = await self.http.call(
            "POST",
            self.settings.reddit_auth_url,
            source="reddit:token",
            auth=(self.settings.reddit_client_id, self.settings.reddit_client_secret),
            data={"grant_type": "client_credentials"},
            headers=self._user_agent,
        )
        try:
            data = response.json()
        except ValueError:
            data = None

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthError("reddit:token", "token endpoint returned no access_token")

        self._token = token
        return token

    async def search_channel(self, channel: str, query: str, token: str) -> List[DiscussionPost]:
        """All pages of one channel's search, up to discussion_max_pages."""
        posts: List[DiscussionPost] = []
        after = None
        source = f"reddit:{channel}"

        for _ in range(self.settings.discussion_max_pages):
            params = {
                "q": query,
                "limit": self.settings.discussion_page_size,
                "sort": "relevance",
                "t": "all",
                "restrict_sr": 1,
            }
            if after:
                params["after"] = after

            listing = await self.http.get_json(
                f"{self.settings.reddit_api_base}/r/{channel}/search",
                source=source,
                policy=self._search_policy,
                params=params,
                headers={"Authorization": f"Bearer {token}", **self._user_agent},
            )
            data = listing.get("data", {}) if isinstance(listing, dict) else {}
            children = data.get("children") or []
            posts.extend(DiscussionPost.from_listing_child(child, channel) for child in children)

            after = data.get("after")
            if not after or not children:
                break

        return posts

    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        deadline = self._clock() + self.budget_seconds
        token = await self.get_token()

        posts: List[DiscussionPost] = []
        searched: List[str] = []
        skipped: List[str] = []
        pending_wait = 0.0
        channels = list(self.settings.discussion_channels)

        for index, channel in enumerate(channels):
            if pending_wait > 0:
                remaining = deadline - self._clock()
                if pending_wait >= remaining:
                    unvisited = channels[index:]
                    logger.warning(
                        f"⏱️ Reddit rate limit wait of {pending_wait:g}s exceeds the "
                        f"{max(remaining, 0.0):.1f}s left, skipping {len(unvisited)} channels"
                    )
                    skipped.extend(unvisited)
                    break

                logger.info(f"⏳ Reddit rate limit: waiting {pending_wait:g}s before r/{channel}")
                await self._sleep(pending_wait)
                pending_wait = 0.0

            try:
                posts.extend(await self.search_channel(channel, query, token))
                searched.append(channel)
            except AuthError:
                raise
            except SourceNotFoundError:
                logger.warning(f"⚠️ r/{channel} not found, skipping")
                skipped.append(channel)
            except RateLimitedError as e:
                pending_wait = (
                    e.retry_after
                    if e.retry_after is not None
                    else float(self.settings.rate_limit_default_wait_seconds)
                )
                logger.warning(f"⏱️ r/{channel} rate limited, resuming in {pending_wait:g}s")
                skipped.append(channel)
            except AnalysisError as e:
                logger.warning(f"⚠️ r/{channel} search failed, skipping: {e}")
                skipped.append(channel)

        posts.sort(key=lambda post: post.score, reverse=True)
        posts = posts[:self.settings.discussion_max_posts]

        logger.info(
            f"🔎 Found {len(posts)} posts across {len(searched)} channels "
            f"({len(skipped)} skipped)"
        )
        return {
            "posts": [post.model_dump(by_alias=True) for post in posts],
            "postCount": len(posts),
            "totalComments": sum(post.comment_count for post in posts),
            "channelsSearched": searched,
            "channelsSkipped": skipped,
        }
