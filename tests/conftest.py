"""
Shared pytest configuration and fixtures.

Nothing here touches the network: HTTP responses are real requests.Response
objects built in memory, and time.sleep is patched out wherever pacing or
backoff would otherwise block.
"""
import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import r2d  # noqa: E402

AUTHOR_ID = "111111111111111111"
OTHER_ID = "222222222222222222"


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Full purge runs against a fake client")


def make_response(status=200, body=None, headers=None, text=None):
    """Build a requests.Response without a server."""
    response = requests.Response()
    response.status_code = status
    if text is not None:
        response._content = text.encode()
    elif body is not None:
        response._content = json.dumps(body).encode()
    else:
        response._content = b""
    response.headers = CaseInsensitiveDict(headers or {})
    response.encoding = "utf-8"
    return response


def make_message(message_id, channel_id="500", author_id=AUTHOR_ID, hit=True, content="hello"):
    return {
        "id": str(message_id),
        "channel_id": channel_id,
        "author": {"id": author_id, "username": "me"},
        "content": content,
        "timestamp": "2024-01-02T03:04:05.000000+00:00",
        "hit": hit,
    }


def make_page(*groups, total=None):
    """A search result; each group is a list of messages."""
    groups = [list(g) for g in groups]
    if total is None:
        total = sum(1 for g in groups for m in g if m.get("hit"))
    return {"total_results": total, "messages": groups}


EMPTY_PAGE = {"total_results": 0, "messages": []}


class FakeClient:
    """Scripted stand-in for r2d.DiscordClient.

    Search pages are served in order per target id; once a script runs out,
    the target looks exhausted. Deletes are recorded and may be scripted to
    raise per message id.
    """

    def __init__(self, pages=None, delete_errors=None, guilds=None, dm_channels=None,
                 guild_channels=None, me=None):
        self.pages = {k: list(v) for k, v in (pages or {}).items()}
        self.delete_errors = delete_errors or {}
        self.guilds = guilds or []
        self.dm_channels = dm_channels or []
        self.guild_channels = guild_channels or {}
        self.me = me or {"id": AUTHOR_ID, "username": "me"}
        self.searches = []
        self.deleted = []
        self.rate_limited = 0

    def _next_page(self, target_id):
        script = self.pages.get(target_id, [])
        if not script:
            return EMPTY_PAGE
        page = script.pop(0)
        if isinstance(page, Exception):
            raise page
        return page

    def get_me(self):
        return self.me

    def get_guilds(self):
        return self.guilds

    def get_dm_channels(self):
        return self.dm_channels

    def get_guild_channels(self, guild_id):
        channels = self.guild_channels.get(guild_id, [])
        if isinstance(channels, Exception):
            raise channels
        return channels

    def search_guild(self, guild_id, author_id, max_id, min_id=None):
        self.searches.append(("guild", guild_id, int(max_id)))
        return self._next_page(guild_id)

    def search_channel(self, channel_id, author_id, max_id, min_id=None):
        self.searches.append(("channel", channel_id, int(max_id)))
        return self._next_page(channel_id)

    def delete_message(self, channel_id, message_id):
        error = self.delete_errors.get(message_id)
        if error is not None:
            raise error
        self.deleted.append((channel_id, message_id))


@pytest.fixture
def no_sleep(monkeypatch):
    """Replace time.sleep inside r2d with a recording mock."""
    sleep = MagicMock()
    monkeypatch.setattr(r2d.time, "sleep", sleep)
    return sleep


@pytest.fixture
def config():
    settings = dict(r2d.DEFAULTS)
    settings.update({"token": "t0ken", "max_age_days": 7})
    for key in ("include_guilds", "exclude_guilds", "include_channels",
                "exclude_channels", "skip_channels"):
        settings[key] = []
    return settings


@pytest.fixture
def stats():
    return r2d.new_stats()
