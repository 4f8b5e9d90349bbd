#!/usr/bin/env python3
"""
r2d - right to disappear

Auto-delete your own Discord messages older than a given age, across every
server you are still in and your DMs. Meant to run unattended from cron.

Walks each target with an author-scoped search and a max_id cursor that only
ever moves backward in time, so a lagging or stale search index can't make
the loop spin forever.

Usage:
    r2d --keep-earlier-than 7d --dry-run       # Preview
    r2d --keep-earlier-than 7d                 # Execute
    r2d -k 2w --skip-channels announcements    # Keep a channel untouched
"""

import argparse
import json
import logging
import os
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import requests

__version__ = "1.0.0"

# Console colors (ANSI escape codes, works on most terminals)
class Colors:
    HEADER = '\033[95m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'

# Constants
DISCORD_API_BASE = "https://discord.com/api/v9"
USER_AGENT = ("Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
              "discord/0.0.71 Chrome/128.0.6613.186 Electron/32.2.6 Safari/537.36")
REQUEST_TIMEOUT = 30

CONFIG_DIR = Path.home() / ".config" / "right2disappear"
CONFIG_FILE = CONFIG_DIR / "config.json"
ARCHIVED_FILE = CONFIG_DIR / "archived-threads.json"
LOG_DIR = Path.home() / ".r2d" / "discord"

DISCORD_EPOCH = 1420070400000
DAY_MS = 86_400_000

GUILD_PAGE_SIZE = 200
SEARCH_PAGE_SIZE = 25
MAX_INDEX_RETRIES = 5
INDEX_RETRY_DELAY = 3.0
ARCHIVED_THREAD_CODE = 50083

DEFAULTS = {
    "token": "",
    "max_age_days": 30,
    "dry_run": False,
    "delete_delay_ms": 1200,
    "search_delay_ms": 3000,
    "include_guilds": [],
    "exclude_guilds": [],
    "include_channels": [],
    "exclude_channels": [],
    "include_dms": True,
    "skip_channels": [],
    "verbose": False,
}

logger = logging.getLogger("r2d")


# ── Errors ─────────────────────────────────────────────────────────

class DiscordError(Exception):
    """Base class for failures reported by the Discord API"""


class DiscordAuthError(DiscordError):
    """Token rejected. Nothing else in the run can succeed."""


class DiscordForbiddenError(DiscordError):
    def __init__(self, path: str):
        super().__init__(f"Forbidden: {path}")
        self.path = path


class DiscordNotFoundError(DiscordError):
    def __init__(self, path: str):
        super().__init__(f"Not found: {path}")
        self.path = path


class DiscordIndexNotReadyError(DiscordError):
    def __init__(self, path: str, attempts: int):
        super().__init__(f"Search index not ready after {attempts} retries: {path}")
        self.path = path
        self.attempts = attempts


class DiscordHTTPError(DiscordError):
    def __init__(self, status: int, method: str, path: str, body: str):
        super().__init__(f"HTTP {status} {method} {path}: {body}")
        self.status = status
        self.method = method
        self.path = path
        self.body = body
        self.code = None
        try:
            data = json.loads(body)
            if isinstance(data, dict):
                self.code = data.get('code')
        except ValueError:
            pass

    @property
    def is_archived_thread(self) -> bool:
        return self.code == ARCHIVED_THREAD_CODE or "Thread is archived" in self.body


# ── Snowflakes ─────────────────────────────────────────────────────

def timestamp_to_snowflake(ms: int) -> int:
    return (int(ms) - DISCORD_EPOCH) << 22


def snowflake_to_timestamp(snowflake) -> int:
    return (int(snowflake) >> 22) + DISCORD_EPOCH


def cutoff_snowflake(days: float, now: Optional[float] = None) -> int:
    """Snowflake for the moment `days` before `now` (epoch seconds)."""
    if now is None:
        now = time.time()
    return timestamp_to_snowflake(int(now * 1000 - days * DAY_MS))


# ── Durations ──────────────────────────────────────────────────────

DURATION_RE = re.compile(r'^(\d+)\s*(h|d|w|m|y)$', re.IGNORECASE)

UNIT_TO_DAYS = {
    'h': 1 / 24,
    'd': 1,
    'w': 7,
    'm': 30,
    'y': 365,
}


def parse_duration(text: str) -> float:
    """Parse '7d', '2w', '1m', '1y', '12h' or a bare number of days.

    Returns:
        The duration in days.
    """
    text = text.strip()
    match = DURATION_RE.match(text)
    if match:
        n = int(match.group(1))
        if n > 0:
            return n * UNIT_TO_DAYS[match.group(2).lower()]
    elif text.isdigit() and int(text) > 0:
        return int(text)
    raise ValueError(f'Invalid duration: "{text}". Use: 7d, 2w, 1m, 1y, or a plain number of days.')


# ── Config & persisted state ───────────────────────────────────────

def _read_json(path: Path):
    with open(path, 'r') as f:
        return json.load(f)


def _token_from_env_file(env_file: Path) -> Optional[str]:
    if not env_file.exists():
        return None
    with open(env_file, 'r') as f:
        for line in f:
            line = line.strip()
            if line.startswith('DISCORD_TOKEN='):
                return line.split('=', 1)[1].strip().strip('"\'')
    return None


def load_config(overrides: Optional[Dict] = None, config_file: Path = CONFIG_FILE,
                environ: Optional[Dict] = None, env_file: Path = Path('.env')) -> Dict:
    """Build the run settings.

    Priority (later wins):
        1. Built-in defaults
        2. config.json under ~/.config/right2disappear
        3. Environment (DISCORD_TOKEN, R2D_MAX_AGE, R2D_DRY_RUN), then a .env file for the token
        4. Command-line overrides
    """
    if environ is None:
        environ = os.environ

    file_settings = {}
    config_file = Path(config_file)
    if config_file.exists():
        try:
            data = _read_json(config_file)
            if isinstance(data, dict):
                file_settings = data
        except (OSError, ValueError) as e:
            logger.warning(f"ignoring unreadable config {config_file}: {e}")

    env = {}
    token = environ.get('DISCORD_TOKEN') or _token_from_env_file(Path(env_file))
    if token:
        env['token'] = token
    if environ.get('R2D_MAX_AGE'):
        try:
            env['max_age_days'] = parse_duration(environ['R2D_MAX_AGE'])
        except ValueError as e:
            logger.warning(f"ignoring R2D_MAX_AGE: {e}")
    if environ.get('R2D_DRY_RUN') == '1':
        env['dry_run'] = True

    config = dict(DEFAULTS)
    config.update(file_settings)
    config.update(env)
    config.update(overrides or {})
    return config


def save_config(updates: Dict, config_file: Path = CONFIG_FILE):
    """Merge `updates` into the config file, readable only by the owner."""
    config_file = Path(config_file)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    existing = {}
    try:
        existing = _read_json(config_file)
    except (OSError, ValueError):
        pass

    existing.update(updates)
    with open(config_file, 'w') as f:
        json.dump(existing, f, indent='\t')
        f.write('\n')
    os.chmod(config_file, 0o600)


def load_archived_threads(path: Path = ARCHIVED_FILE) -> Dict[str, Dict]:
    try:
        data = _read_json(path)
    except (OSError, ValueError):
        return {}
    return dict(data) if isinstance(data, dict) else {}


def save_archived_threads(threads: Dict[str, Dict], path: Path = ARCHIVED_FILE):
    if not threads:
        return
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(threads, f, indent='\t')
        f.write('\n')


# ── Logging ────────────────────────────────────────────────────────

class ConsoleFormatter(logging.Formatter):
    """`[r2d] message`, with a WARN/ERROR marker for problems"""

    def format(self, record):
        message = super().format(record)
        if record.levelno >= logging.ERROR:
            return f"[r2d] ERROR: {message}"
        if record.levelno >= logging.WARNING:
            return f"[r2d] WARN: {message}"
        return f"[r2d] {message}"


def setup_logging(verbose: bool = False, log_dir: Path = LOG_DIR):
    """Configure logging to a dated file and the console.

    The file always gets DEBUG records so a cron run can be picked apart later;
    the console only shows them with --verbose.
    """
    log_format = '%(asctime)s [%(levelname)s] %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"

    # File handler
    file_handler = logging.FileHandler(log_file, mode='a')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(log_format, date_format))

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ConsoleFormatter('%(message)s'))

    logger.handlers.clear()
    logger.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.propagate = False

    return log_file


# ── Client ─────────────────────────────────────────────────────────

class DiscordClient:
    """Thin binding to the Discord REST endpoints r2d needs.

    Every call goes through `request`, which owns the retry ladder: 429s are
    retried forever after the server-provided wait, 202 (search index still
    building) a bounded number of times, and everything else is mapped onto
    the DiscordError hierarchy.
    """

    def __init__(self, token: str, session: Optional[requests.Session] = None):
        self.token = token
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': token,
            'User-Agent': USER_AGENT,
            'Content-Type': 'application/json',
        })
        self.rate_limited = 0

    def request(self, method: str, path: str, params: Optional[Dict] = None):
        attempt = 0
        while True:
            logger.debug(f"{method} {path} {params or ''}".rstrip())
            response = self.session.request(method, f"{DISCORD_API_BASE}{path}",
                                            params=params, timeout=REQUEST_TIMEOUT)
            status = response.status_code

            # Rate limited: wait what the server asks plus a second, then retry as-is
            if status == 429:
                try:
                    retry_after = float(response.json().get('retry_after', 1))
                except (ValueError, AttributeError):
                    retry_after = 1.0
                wait_time = retry_after + 1
                self.rate_limited += 1
                logger.warning(f"rate limited on {path}, waiting {round(wait_time)}s")
                time.sleep(wait_time)
                continue

            # Search index still building
            if status == 202:
                if attempt >= MAX_INDEX_RETRIES:
                    raise DiscordIndexNotReadyError(path, attempt)
                attempt += 1
                logger.debug(f"search index building, retrying in {INDEX_RETRY_DELAY:.0f}s")
                time.sleep(INDEX_RETRY_DELAY)
                continue

            if status == 401:
                raise DiscordAuthError("Invalid or expired token")
            if status == 403:
                raise DiscordForbiddenError(path)
            if status == 404:
                raise DiscordNotFoundError(path)
            if status == 204:
                return {}
            if not response.ok:
                raise DiscordHTTPError(status, method, path, response.text)

            # Bucket drained: sit out the reset now instead of eating a 429 later
            remaining = response.headers.get('X-RateLimit-Remaining')
            reset_after = response.headers.get('X-RateLimit-Reset-After')
            if remaining == '0' and reset_after:
                wait_time = float(reset_after) + 0.2
                logger.debug(f"bucket exhausted, waiting {round(wait_time * 1000)}ms")
                time.sleep(wait_time)

            return response.json()

    # ── Endpoints ──────────────────────────────────────────────────

    def get_me(self) -> Dict:
        return self.request('GET', '/users/@me')

    def get_guilds(self) -> List[Dict]:
        """All guilds the user is in, following Discord's 200-per-page pagination."""
        guilds = []
        after = None
        while True:
            params = {'limit': GUILD_PAGE_SIZE}
            if after:
                params['after'] = after
            batch = self.request('GET', '/users/@me/guilds', params=params)
            guilds.extend(batch)
            if len(batch) < GUILD_PAGE_SIZE:
                return guilds
            after = batch[-1]['id']

    def get_dm_channels(self) -> List[Dict]:
        return self.request('GET', '/users/@me/channels')

    def get_guild_channels(self, guild_id: str) -> List[Dict]:
        return self.request('GET', f'/guilds/{guild_id}/channels')

    def search_guild(self, guild_id: str, author_id: str, max_id, min_id=None) -> Dict:
        params = {
            'author_id': author_id,
            'max_id': str(max_id),
            'sort_order': 'asc',
            'include_nsfw': 'true',
        }
        if min_id is not None:
            params['min_id'] = str(min_id)
        return self.request('GET', f'/guilds/{guild_id}/messages/search', params=params)

    def search_channel(self, channel_id: str, author_id: str, max_id, min_id=None) -> Dict:
        params = {
            'author_id': author_id,
            'max_id': str(max_id),
            'sort_order': 'asc',
        }
        if min_id is not None:
            params['min_id'] = str(min_id)
        return self.request('GET', f'/channels/{channel_id}/messages/search', params=params)

    def delete_message(self, channel_id: str, message_id: str):
        self.request('DELETE', f'/channels/{channel_id}/messages/{message_id}')


# ── Targets ────────────────────────────────────────────────────────

class Target:
    """Something searchable: a guild, or a single DM / group DM channel."""

    kind = None

    def __init__(self, target_id: str, name: str):
        self.id = target_id
        self.name = name

    def search(self, client: DiscordClient, author_id: str, max_id, min_id=None) -> Dict:
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}({self.id!r}, {self.name!r})"


class GuildTarget(Target):
    kind = 'guild'

    @classmethod
    def from_api(cls, guild: Dict) -> 'GuildTarget':
        return cls(guild['id'], guild.get('name') or guild['id'])

    def search(self, client, author_id, max_id, min_id=None):
        return client.search_guild(self.id, author_id, max_id, min_id)


class DMTarget(Target):
    kind = 'channel'

    @classmethod
    def from_api(cls, channel: Dict) -> 'DMTarget':
        return cls(channel['id'], dm_display_name(channel))

    def search(self, client, author_id, max_id, min_id=None):
        return client.search_channel(self.id, author_id, max_id, min_id)


def dm_display_name(channel: Dict) -> str:
    recipients = ", ".join(r.get('username', '') for r in channel.get('recipients') or [])
    return recipients or channel.get('name') or channel['id']


def matches_skip_pattern(name: str, patterns: List[str]) -> bool:
    """Case-insensitive substring match against any pattern."""
    lower = name.lower()
    return any(p.lower() in lower for p in patterns if p)


def extract_hits(result: Dict, author_id: str) -> List[Dict]:
    """Our own hit messages from a search page, once each.

    Search pages come back as context groups around each hit, so the same
    message can show up in several groups.
    """
    seen = set()
    hits = []
    for group in result.get('messages', []):
        for msg in group:
            if (msg.get('hit') and msg.get('author', {}).get('id') == author_id
                    and msg['id'] not in seen):
                seen.add(msg['id'])
                hits.append(msg)
    return hits


def new_stats() -> Dict:
    return {
        'guilds_processed': 0,
        'channels_processed': 0,
        'messages_deleted': 0,
        'messages_skipped': 0,
        'messages_failed': 0,
        'errors': [],
    }


# ── Purge ──────────────────────────────────────────────────────────

class Purger:
    """Runs the search -> filter -> delete loop for one target at a time.

    `stats` and `archived_threads` belong to the caller and are mutated in
    place, so the same pair can be threaded through every target of a run.
    """

    def __init__(self, client: DiscordClient, config: Dict, stats: Dict,
                 archived_threads: Dict[str, Dict]):
        self.client = client
        self.config = config
        self.stats = stats
        self.archived_threads = archived_threads

    def pause(self, key: str):
        time.sleep(self.config[key] / 1000)

    def purge_target(self, target: Target, author_id: str, max_id: int,
                     channel_names: Optional[Dict[str, str]] = None,
                     guild_name: Optional[str] = None):
        """Delete the author's messages in `target` with ids below `max_id`.

        Forbidden targets are logged and skipped. Any other error propagates
        to the caller.
        """
        logger.debug(f"scanning {target.kind}: {target.name} ({target.id})")
        guild_name = guild_name or target.name
        skip_patterns = self.config['skip_channels']
        dry_run = self.config['dry_run']
        max_id = int(max_id)
        total_found = 0
        round_no = 0

        while True:
            round_no += 1
            try:
                result = target.search(self.client, author_id, max_id)
            except DiscordForbiddenError:
                logger.debug(f"no access to {target.kind} {target.name}, skipping")
                return

            total_results = result.get('total_results', 0)
            message_groups = result.get('messages') or []
            if total_results == 0 or not message_groups:
                if total_found:
                    logger.debug(f"{target.kind} {target.name}: done ({total_found} messages processed)")
                break

            hits = extract_hits(result, author_id)

            # Guild search spans every channel, so skip patterns apply per message
            if channel_names and skip_patterns:
                kept = []
                for msg in hits:
                    ch_name = channel_names.get(msg['channel_id'])
                    if ch_name and matches_skip_pattern(ch_name, skip_patterns):
                        logger.debug(f"  skipping message in #{ch_name} (matches skip pattern)")
                        self.stats['messages_skipped'] += 1
                        continue
                    kept.append(msg)
                hits = kept

            if not hits:
                if total_results <= SEARCH_PAGE_SIZE:
                    logger.debug(f"{target.kind} {target.name}: no actionable hits, done")
                    break
                # More results exist but this whole page was skipped; page past it
                raw_ids = [int(msg['id']) for group in message_groups for msg in group]
                if not raw_ids:
                    break
                max_id = min(raw_ids)
                logger.debug(f"{target.kind} {target.name}: page fully skipped, advancing past {max_id}")
                self.pause('search_delay_ms')
                continue

            hits.sort(key=lambda m: int(m['id']))
            total_found += len(hits)
            logger.debug(f"{target.kind} {target.name} round {round_no}: "
                         f"{len(hits)} messages ({total_results} total remaining)")

            deleted_in_batch = 0
            for msg in hits:
                if self.delete_one(msg, channel_names, guild_name, dry_run):
                    deleted_in_batch += 1

            # Nothing actually went away (dry run, archived, ghosts): step the cursor
            # below this page ourselves or the next search returns it again
            if deleted_in_batch == 0:
                max_id = min(int(m['id']) for m in hits) - 1

            # Let the search index catch up after deletions
            self.pause('search_delay_ms')

        if total_found:
            verb = "would delete" if dry_run else "deleted"
            logger.info(f"  {target.kind} {target.name}: {verb} {total_found} messages")

    def delete_one(self, msg: Dict, channel_names: Optional[Dict[str, str]],
                   guild_name: str, dry_run: bool) -> bool:
        """Handle one hit. Returns True only if a real DELETE succeeded."""
        message_id = msg['id']
        channel_id = msg['channel_id']
        preview = (msg.get('content') or '')[:60].replace('\n', ' ')
        timestamp = (msg.get('timestamp') or '')[:10]
        ch_label = (channel_names or {}).get(channel_id)
        loc = f" #{ch_label}" if ch_label else ""

        if channel_id in self.archived_threads:
            self.stats['messages_skipped'] += 1
            return False

        if dry_run:
            logger.info(f"  [dry-run] would delete {message_id}{loc} ({timestamp}): {preview}")
            self.stats['messages_deleted'] += 1
            return False

        deleted = False
        try:
            self.client.delete_message(channel_id, message_id)
            self.stats['messages_deleted'] += 1
            deleted = True
            logger.debug(f"  deleted {message_id}{loc} ({timestamp}): {preview}")
        except DiscordAuthError:
            raise
        except DiscordNotFoundError:
            logger.debug(f"  {message_id} already deleted")
        except DiscordHTTPError as e:
            if e.is_archived_thread:
                self.record_archived(channel_id, ch_label or channel_id, guild_name)
            else:
                self.record_failure(message_id, e)
        except (DiscordError, requests.RequestException) as e:
            self.record_failure(message_id, e)

        self.pause('delete_delay_ms')
        return deleted

    def record_archived(self, channel_id: str, channel_name: str, guild_name: str):
        self.archived_threads[channel_id] = {
            'guild': guild_name,
            'channel': channel_name,
            'since': datetime.now().strftime('%Y-%m-%d'),
        }
        logger.warning(f'can\'t delete in archived thread "{channel_name}" in {guild_name} - '
                       f'thread is locked, need MANAGE_THREADS permission to unarchive')
        self.stats['messages_skipped'] += 1

    def record_failure(self, message_id: str, error: Exception):
        logger.warning(f"  failed to delete {message_id}: {error}")
        self.stats['messages_failed'] += 1
        self.stats['errors'].append(f"{message_id}: {error}")


def purge(client: DiscordClient, config: Dict, archived_file: Path = ARCHIVED_FILE,
          now: Optional[float] = None) -> Dict:
    """Run one full purge over every guild and DM the account can see.

    Raises:
        DiscordAuthError: the token is no good.
        DiscordError / requests.RequestException: the account's guild or DM
            list couldn't be fetched.
    """
    archived_threads = load_archived_threads(archived_file)
    if archived_threads:
        logger.info(f"{len(archived_threads)} known archived threads will be skipped")

    stats = new_stats()
    purger = Purger(client, config, stats, archived_threads)

    me = client.get_me()
    author_id = me['id']
    logger.info(f"authenticated as {me.get('username')} ({author_id})")

    if now is None:
        now = time.time()
    max_age_days = config['max_age_days']
    max_id = cutoff_snowflake(max_age_days, now)
    cutoff_date = datetime.fromtimestamp(now - max_age_days * 86400, tz=timezone.utc).strftime('%Y-%m-%d')
    logger.info(f"target: messages before {cutoff_date} ({max_age_days} days)"
                f"{' [DRY RUN]' if config['dry_run'] else ''}")

    skip_patterns = config['skip_channels']
    if skip_patterns:
        logger.info(f"skip channels matching: {', '.join(skip_patterns)}")

    try:
        # Guilds
        guilds = client.get_guilds()
        logger.info(f"found {len(guilds)} guilds")

        for guild in guilds:
            if config['include_guilds'] and guild['id'] not in config['include_guilds']:
                continue
            if guild['id'] in config['exclude_guilds']:
                continue
            target = GuildTarget.from_api(guild)

            channel_names = None
            if skip_patterns:
                try:
                    channel_names = {c['id']: c.get('name') or ''
                                     for c in client.get_guild_channels(target.id)}
                except DiscordAuthError:
                    raise
                except Exception:
                    logger.debug(f"could not fetch channels for {target.name}, skip-channels won't apply")

            try:
                purger.purge_target(target, author_id, max_id, channel_names, target.name)
                stats['guilds_processed'] += 1
            except DiscordAuthError:
                raise
            except Exception as e:
                logger.error(f"guild {target.name}: {e}")
                stats['errors'].append(f"guild {target.name}: {e}")

        # DM channels
        if config['include_dms']:
            channels = client.get_dm_channels()
            logger.info(f"found {len(channels)} DM channels")

            for channel in channels:
                if channel['id'] in config['exclude_channels']:
                    continue
                if config['include_channels'] and channel['id'] not in config['include_channels']:
                    continue
                target = DMTarget.from_api(channel)

                if skip_patterns and matches_skip_pattern(target.name, skip_patterns):
                    logger.debug(f'skipping DM channel "{target.name}" (matches skip pattern)')
                    continue

                try:
                    purger.purge_target(target, author_id, max_id, None, target.name)
                    stats['channels_processed'] += 1
                except DiscordAuthError:
                    raise
                except Exception as e:
                    logger.error(f"DM {target.name}: {e}")
                    stats['errors'].append(f"DM {target.name}: {e}")
    finally:
        # Save even on abort so a recorded thread is never retried
        save_archived_threads(archived_threads, archived_file)
    return stats


# ── CLI ────────────────────────────────────────────────────────────

def print_token_instructions():
    print(f"{Colors.RED}Error: No Discord token found!{Colors.ENDC}")
    print("\nProvide your token using one of these methods:")
    print("  1. Use --token flag:    r2d --token 'your_token' --save")
    print("  2. Set env variable:    export DISCORD_TOKEN='your_token'")
    print("  3. Create a .env file:  echo 'DISCORD_TOKEN=your_token' > .env")
    print(f"  4. Add \"token\" to:     {CONFIG_FILE}")


def print_summary(stats: Dict, dry_run: bool = False, rate_limited: int = 0):
    """Print execution summary"""
    print(f"\n{Colors.HEADER}{'='*60}{Colors.ENDC}")
    print(f"{Colors.HEADER}SUMMARY{Colors.ENDC}")
    print(f"{Colors.HEADER}{'='*60}{Colors.ENDC}\n")

    print(f"{Colors.BOLD}Guilds scanned:{Colors.ENDC} {stats['guilds_processed']}")
    print(f"{Colors.BOLD}DM channels:{Colors.ENDC} {stats['channels_processed']}")
    print(f"{Colors.GREEN}Messages {'found' if dry_run else 'deleted'}:{Colors.ENDC} "
          f"{stats['messages_deleted']}")
    if stats['messages_skipped']:
        print(f"{Colors.YELLOW}Skipped:{Colors.ENDC} {stats['messages_skipped']}")
    if stats['messages_failed']:
        print(f"{Colors.RED}Failed:{Colors.ENDC} {stats['messages_failed']}")
    if rate_limited:
        print(f"{Colors.CYAN}Rate limited:{Colors.ENDC} {rate_limited} times")
    if stats['errors']:
        print(f"{Colors.RED}Errors:{Colors.ENDC} {len(stats['errors'])}")
        for error in stats['errors']:
            print(f"  - {error}")


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(',') if part.strip()]


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='r2d',
        description='r2d - auto-delete Discord messages older than a given age',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Preview what a 7 day retention would delete
  r2d --keep-earlier-than 7d --dry-run

  # Keep two weeks, never touch announcement channels
  r2d -k 2w --skip-channels="announcements,changelog"

  # Daily at 3am from cron
  0 3 * * * r2d --keep-earlier-than 7d 2>&1 | logger -t r2d

Environment:
  DISCORD_TOKEN    User token (overrides config file)
  R2D_MAX_AGE      Age threshold (7d, 2w, ... or a number of days)
  R2D_DRY_RUN=1    Enable dry run

Config: {CONFIG_FILE}

Only reaches messages in guilds you are currently in, plus your DMs.
        """
    )

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--keep-earlier-than', '-k', type=parse_duration, metavar='DUR',
                        help='Keep messages newer than this; delete the rest (7d, 2w, 1m, 1y; default 30d)')
    parser.add_argument('--skip-channels', '-s', type=_split_list, metavar='NAMES',
                        help='Comma-separated channel name patterns to skip (case-insensitive contains)')
    parser.add_argument('--token', '-t', help='Discord user token')
    parser.add_argument('--dry-run', '-n', action='store_true', help='Show what would be deleted, delete nothing')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose console output')
    parser.add_argument('--save', action='store_true', help='Persist the provided --token to the config file')
    parser.add_argument('--include-guilds', type=_split_list, metavar='IDS',
                        help='Comma-separated guild IDs to process (allowlist)')
    parser.add_argument('--exclude-guilds', type=_split_list, metavar='IDS',
                        help='Comma-separated guild IDs to skip')
    parser.add_argument('--include-channels', type=_split_list, metavar='IDS',
                        help='Comma-separated DM channel IDs to process (allowlist)')
    parser.add_argument('--exclude-channels', type=_split_list, metavar='IDS',
                        help='Comma-separated DM channel IDs to skip')
    parser.add_argument('--no-dms', action='store_true', help='Skip DM channels')
    parser.add_argument('--verify-auth', action='store_true', help='Verify token and exit')

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> Dict:
    overrides = {}
    if args.token:
        overrides['token'] = args.token
    if args.keep_earlier_than is not None:
        overrides['max_age_days'] = args.keep_earlier_than
    if args.dry_run:
        overrides['dry_run'] = True
    if args.verbose:
        overrides['verbose'] = True
    if args.no_dms:
        overrides['include_dms'] = False
    for key in ('skip_channels', 'include_guilds', 'exclude_guilds',
                'include_channels', 'exclude_channels'):
        value = getattr(args, key)
        if value:
            overrides[key] = value
    return overrides


def main(argv=None) -> int:
    """Main entry point"""
    args = parse_arguments(argv)
    config = load_config(build_overrides(args))
    setup_logging(config['verbose'])

    if args.save and config['token']:
        save_config({'token': config['token']})
        logger.info(f"token saved to {CONFIG_FILE}")

    if not config['token']:
        logger.error("no token available")
        print_token_instructions()
        return 1

    client = DiscordClient(config['token'])

    try:
        if args.verify_auth:
            me = client.get_me()
            print(f"{Colors.GREEN}Token is valid!{Colors.ENDC} Logged in as @{me.get('username')} (ID: {me['id']})")
            return 0
        stats = purge(client, config)
    except DiscordAuthError as e:
        logger.error(f"{e} - refresh DISCORD_TOKEN or the config file")
        return 1
    except (DiscordError, requests.RequestException) as e:
        logger.error(str(e))
        return 1

    print_summary(stats, config['dry_run'], client.rate_limited)
    return 1 if stats['messages_failed'] > 0 else 0


if __name__ == '__main__':
    sys.exit(main())
