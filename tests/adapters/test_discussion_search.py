"""
Tests for the Reddit discussion search adapter.
"""
import httpx
import pytest

from src.adapters.discussion_search import DiscussionSearchAdapter
from src.models.source_result import ErrorKind


pytestmark = pytest.mark.asyncio


def listing(*posts, after=None):
    return {
        "data": {
            "after": after,
            "children": [{"kind": "t3", "data": post} for post in posts],
        }
    }


def post(title, score, comments=0, subreddit="startups", selftext=""):
    return {
        "title": title,
        "score": score,
        "num_comments": comments,
        "created_utc": 1_700_000_000,
        "subreddit": subreddit,
        "permalink": f"/r/{subreddit}/comments/{title.replace(' ', '_')}",
        "selftext": selftext,
    }


def fresh(response: httpx.Response) -> httpx.Response:
    return httpx.Response(response.status_code, headers=response.headers, content=response.content)


class RedditStub:
    """Token endpoint plus scripted per-channel search responses."""

    def __init__(self, channels: dict, token_response=None):
        self.channels = channels
        self.token_response = token_response or httpx.Response(
            200, json={"access_token": "tok-123", "token_type": "bearer"}
        )
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/v1/access_token":
            return fresh(self.token_response)
        channel = request.url.path.split("/")[2]
        responses = self.channels.get(channel)
        if responses is None:
            return httpx.Response(404)
        if isinstance(responses, list):
            return fresh(responses.pop(0))
        return fresh(responses)

    def search_requests(self, channel=None):
        return [
            r for r in self.requests
            if r.url.path.endswith("/search") and (channel is None or f"/r/{channel}/" in r.url.path)
        ]


class TestDiscussionSearchAdapter:

    async def test_collects_and_sorts_posts(self, make_http, settings):
        stub = RedditStub({
            "startups": httpx.Response(200, json=listing(post("need help", 10, 4), post("big", 300, 20))),
            "entrepreneur": httpx.Response(200, json=listing(post("mid", 50, 2, "entrepreneur"))),
        })
        adapter = DiscussionSearchAdapter(make_http(stub), settings)

        result = await adapter.fetch("football socks")

        assert result.succeeded is True
        assert [p["title"] for p in result.payload["posts"]] == ["big", "mid", "need help"]
        assert result.payload["postCount"] == 3
        assert result.payload["totalComments"] == 26
        assert result.payload["channelsSearched"] == ["startups", "entrepreneur"]
        assert result.payload["posts"][0]["commentCount"] == 20
        assert result.payload["posts"][0]["url"].startswith("https://www.reddit.com/r/startups/")

    async def test_token_request_and_bearer_header(self, make_http, settings):
        stub = RedditStub({"startups": httpx.Response(200, json=listing()),
                           "entrepreneur": httpx.Response(200, json=listing())})
        adapter = DiscussionSearchAdapter(make_http(stub), settings)

        await adapter.fetch("football socks")

        token_request = stub.requests[0]
        assert token_request.method == "POST"
        assert token_request.headers["authorization"].startswith("Basic ")
        assert b"grant_type=client_credentials" in token_request.content

        search = stub.search_requests("startups")[0]
        assert search.headers["authorization"] == "Bearer tok-123"
        assert search.url.params["q"] == "football socks"
        assert search.url.params["restrict_sr"] == "1"
        assert search.url.params["sort"] == "relevance"

    async def test_token_cached_for_adapter_lifetime(self, make_http, settings):
        stub = RedditStub({})
        adapter = DiscussionSearchAdapter(make_http(stub), settings)

        assert await adapter.get_token() == "tok-123"
        assert await adapter.get_token() == "tok-123"

        token_calls = [r for r in stub.requests if r.url.path == "/api/v1/access_token"]
        assert len(token_calls) == 1

    async def test_missing_channel_is_skipped(self, make_http, settings):
        stub = RedditStub({"entrepreneur": httpx.Response(200, json=listing(post("ok", 5)))})
        adapter = DiscussionSearchAdapter(make_http(stub), settings)

        result = await adapter.fetch("football socks")

        assert result.succeeded is True
        assert result.payload["channelsSkipped"] == ["startups"]
        assert result.payload["channelsSearched"] == ["entrepreneur"]
        assert result.payload["postCount"] == 1

    async def test_rate_limited_channel_waits_before_next(self, make_http, settings, sleeper):
        stub = RedditStub({
            "startups": httpx.Response(429, headers={"retry-after": "5"}),
            "entrepreneur": httpx.Response(200, json=listing(post("ok", 5, subreddit="entrepreneur"))),
        })
        adapter = DiscussionSearchAdapter(make_http(stub), settings, sleep=sleeper, budget_seconds=120)

        result = await adapter.fetch("football socks")

        # Waited the full retry-after before the next channel and never retried startups
        assert sleeper.calls == [5.0]
        assert len(stub.search_requests("startups")) == 1
        assert len(stub.search_requests("entrepreneur")) == 1
        assert result.payload["channelsSkipped"] == ["startups"]
        assert result.payload["postCount"] == 1

    async def test_rate_limit_without_header_uses_default_wait(self, make_http, settings, sleeper):
        stub = RedditStub({
            "startups": httpx.Response(429),
            "entrepreneur": httpx.Response(200, json=listing()),
        })
        adapter = DiscussionSearchAdapter(make_http(stub), settings, sleep=sleeper, budget_seconds=120)

        await adapter.fetch("football socks")

        assert sleeper.calls == [60.0]

    async def test_pagination_follows_after(self, make_http, settings):
        paged = settings.model_copy(update={"discussion_max_pages": 2, "discussion_channels": ["startups"]})
        stub = RedditStub({
            "startups": [
                httpx.Response(200, json=listing(post("one", 1), after="t3_abc")),
                httpx.Response(200, json=listing(post("two", 2))),
            ],
        })
        adapter = DiscussionSearchAdapter(make_http(stub), paged)

        result = await adapter.fetch("football socks")

        searches = stub.search_requests("startups")
        assert len(searches) == 2
        assert "after" not in searches[0].url.params
        assert searches[1].url.params["after"] == "t3_abc"
        assert result.payload["postCount"] == 2

    async def test_posts_capped_at_maximum(self, make_http, settings):
        many = [post(f"p{i}", i) for i in range(40)]
        stub = RedditStub({
            "startups": httpx.Response(200, json=listing(*many)),
            "entrepreneur": httpx.Response(200, json=listing(*many)),
        })
        adapter = DiscussionSearchAdapter(make_http(stub), settings)

        result = await adapter.fetch("football socks")

        assert result.payload["postCount"] == 50
        assert result.payload["posts"][0]["score"] == 39

    async def test_bad_credentials_abort_search(self, make_http, settings):
        stub = RedditStub({}, token_response=httpx.Response(401))
        adapter = DiscussionSearchAdapter(make_http(stub), settings)

        result = await adapter.fetch("football socks")

        assert result.succeeded is False
        assert result.error_kind == ErrorKind.AUTH
        assert result.payload["posts"] == []
        assert stub.search_requests() == []

    async def test_token_response_without_token(self, make_http, settings):
        stub = RedditStub({}, token_response=httpx.Response(200, json={"error": "invalid_grant"}))
        adapter = DiscussionSearchAdapter(make_http(stub), settings)

        result = await adapter.fetch("football socks")

        assert result.succeeded is False
        assert result.error_kind == ErrorKind.AUTH

    async def test_rate_limit_reset_header_sets_wait(self, make_http, settings, sleeper):
        stub = RedditStub({
            "startups": httpx.Response(429, headers={"x-ratelimit-reset": "5"}),
            "entrepreneur": httpx.Response(200, json=listing()),
        })
        adapter = DiscussionSearchAdapter(make_http(stub), settings, sleep=sleeper, budget_seconds=120)

        await adapter.fetch("football socks")

        assert sleeper.calls == [5.0]

    async def test_wait_longer_than_budget_returns_collected_posts(self, make_http, settings, sleeper):
        three = settings.model_copy(update={
            "discussion_channels": ["entrepreneur", "startups", "smallbusiness"],
            "rate_limit_default_wait_seconds": 1,
        })
        stub = RedditStub({
            "entrepreneur": httpx.Response(200, json=listing(post("early", 7, subreddit="entrepreneur"))),
            "startups": httpx.Response(429),
            "smallbusiness": httpx.Response(200, json=listing(post("late", 9, subreddit="smallbusiness"))),
        })
        adapter = DiscussionSearchAdapter(make_http(stub), three, sleep=sleeper, budget_seconds=0.3)

        result = await adapter.fetch("football socks")

        assert result.succeeded is True
        assert sleeper.calls == []
        assert [p["title"] for p in result.payload["posts"]] == ["early"]
        assert result.payload["channelsSearched"] == ["entrepreneur"]
        assert result.payload["channelsSkipped"] == ["startups", "smallbusiness"]
        assert stub.search_requests("smallbusiness") == []

    async def test_wait_within_budget_still_sleeps(self, make_http, settings, sleeper):
        ticks = iter([0.0, 1.0])
        adapter = DiscussionSearchAdapter(
            make_http(RedditStub({
                "startups": httpx.Response(429, headers={"retry-after": "3"}),
                "entrepreneur": httpx.Response(200, json=listing()),
            })),
            settings,
            sleep=sleeper,
            budget_seconds=10,
            clock=lambda: next(ticks),
        )

        result = await adapter.fetch("football socks")

        assert sleeper.calls == [3.0]
        assert result.payload["channelsSearched"] == ["entrepreneur"]
