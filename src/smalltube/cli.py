"""Command-line front end for SmallTube.

Usage::

    smalltube keys add AIza...            # store an API key
    smalltube keys validate
    smalltube trending [--refresh]
    smalltube search "lofi hip hop"
    smalltube channel UC... [--refresh]
    smalltube home [--refresh]
    smalltube subscriptions import subscriptions.csv
    smalltube usage

Configuration comes from ``SMALLTUBE_*`` environment variables or a
``.env`` file (see :class:`smalltube.config.settings.Settings`).  Without
``SMALLTUBE_CREDENTIAL_ENCRYPTION_KEY`` the key list is kept in memory only,
so API keys must then be supplied through ``SMALLTUBE_YOUTUBE_API_KEYS``.

Exit codes:
    0  Success
    1  A request failed (the alert category is printed to stderr)
    2  Usage error
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from smalltube.config.settings import CacheTimeout, Settings, get_settings
from smalltube.core.alerts import AlertType, map_error_to_alert
from smalltube.core.api_keys import ApiKeyPool
from smalltube.core.exceptions import NoCredentialAvailableError, SmallTubeError
from smalltube.core.fetch_client import KeyRotatingClient
from smalltube.core.logging_config import configure_logging, mask_key
from smalltube.core.secret_store import FernetSecretStore, InMemorySecretStore, SecretStore
from smalltube.core.state import JsonFileStateStore, Preferences
from smalltube.core.usage import UsageTracker
from smalltube.youtube._client import key_check_url
from smalltube.youtube.config import YOUTUBE_VIDEO_URL
from smalltube.youtube.history import SearchHistory
from smalltube.youtube.models import Channel, Video
from smalltube.youtube.service import YouTubeService
from smalltube.youtube.subscriptions import SubscriptionStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


@dataclass
class AppContext:
    """Everything a command needs, built once per invocation."""

    settings: Settings
    preferences: Preferences
    usage: UsageTracker
    pool: ApiKeyPool
    subscriptions: SubscriptionStore
    history: SearchHistory


def _secret_store(settings: Settings) -> SecretStore:
    if settings.credential_encryption_key:
        return FernetSecretStore(settings.secrets_file, settings.credential_encryption_key)
    logger.warning(
        "cli: SMALLTUBE_CREDENTIAL_ENCRYPTION_KEY is not set; API keys will not be persisted"
    )
    return InMemorySecretStore()


def build_context(settings: Settings) -> AppContext:
    preferences = Preferences(JsonFileStateStore(settings.state_file))
    usage = UsageTracker(
        preferences,
        default_limit=settings.default_quota_limit,
        auto_reset=settings.quota_auto_reset,
        reset_timezone=settings.quota_reset_timezone,
    )
    pool = ApiKeyPool(
        _secret_store(settings),
        preferences,
        usage=usage,
        env_fallback=settings.youtube_api_keys,
    )
    return AppContext(
        settings=settings,
        preferences=preferences,
        usage=usage,
        pool=pool,
        subscriptions=SubscriptionStore(preferences),
        history=SearchHistory(preferences),
    )


def build_service(ctx: AppContext, client: KeyRotatingClient) -> YouTubeService:
    settings = ctx.settings
    return YouTubeService(
        client,
        ctx.subscriptions,
        cache_dir=settings.resolved_cache_dir,
        cache_ttl=ctx.preferences.cache_timeout(settings.cache_timeout).seconds,
        subscriptions_ttl=settings.subscriptions_cache_ttl,
        history=ctx.history,
        results_count=settings.results_count,
        home_feed_channel_count=settings.home_feed_channel_count,
        country_code=settings.country_code,
        thumbnail_quality=settings.thumbnail_quality,
        base_url=settings.youtube_api_base_url,
    )


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _format_duration(seconds: int | None) -> str:
    if seconds is None:
        return "--:--"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}" if hours else f"{minutes}:{secs:02d}"


def _print_videos(videos: list[Video]) -> None:
    for video in videos:
        print(
            f"{video.published_at:%Y-%m-%d}  {_format_duration(video.duration_seconds):>8}  "
            f"{video.channel_title}: {video.title}  {YOUTUBE_VIDEO_URL.format(video_id=video.id)}"
        )


def _print_channels(channels: list[Channel]) -> None:
    for channel in channels:
        print(f"{channel.id}  {channel.title}")


def _alert(alert: AlertType) -> int:
    print(f"[smalltube] {alert.value}: {alert.message}", file=sys.stderr)
    return 1


# ---------------------------------------------------------------------------
# Network commands
# ---------------------------------------------------------------------------


async def _run_network(ctx: AppContext, args: argparse.Namespace) -> int:
    settings = ctx.settings
    async with KeyRotatingClient(
        ctx.pool,
        ctx.usage,
        request_timeout=settings.request_timeout,
        resource_timeout=settings.resource_timeout,
    ) as client:
        service = build_service(ctx, client)
        command = args.command

        if command == "trending":
            if args.refresh:
                videos = await service.refresh_trending()
            else:
                videos = await service.trending()
        elif command == "home":
            if args.refresh:
                videos = await service.refresh_home_feed()
            else:
                videos = await service.home_feed()
        elif command == "channel":
            if args.refresh:
                videos = await service.refresh_channel(args.channel_id)
            else:
                videos = await service.channel_videos(args.channel_id)
        elif command == "search":
            if not args.query.strip():
                return _alert(AlertType.EMPTY_QUERY)
            videos = await service.search_videos(args.query)
        elif command == "find-channel":
            channels = await service.search_channels(args.query)
            if not channels:
                return _alert(AlertType.NO_RESULTS)
            _print_channels(channels)
            return 0
        elif command == "subscriptions" and args.action == "list":
            _print_channels(await service.fetch_subscriptions(descending=args.descending))
            return 0
        elif command == "subscriptions" and args.action == "add":
            if not await service.validate_channel(args.channel_id):
                print(f"[smalltube] channel not found: {args.channel_id}", file=sys.stderr)
                return 1
            print(f"subscribed to {args.channel_id}")
            return 0
        else:
            raise ValueError(f"unknown command {command!r}")

    if not videos:
        return _alert(AlertType.NO_RESULTS)
    _print_videos(videos)
    return 0


# ---------------------------------------------------------------------------
# Local commands
# ---------------------------------------------------------------------------


def _run_keys(ctx: AppContext, args: argparse.Namespace) -> int:
    pool = ctx.pool
    if args.action == "list":
        current = pool.current_index
        for index, key in enumerate(pool.keys):
            marker = "*" if index == current else " "
            print(
                f"{marker} {index}  {pool.label_for(key):<20}  "
                f"{ctx.usage.usage_for(key):>6}/{ctx.usage.limit_for(key)}"
            )
        return 0
    if args.action == "add":
        if not pool.add_key(args.key):
            print("[smalltube] key is blank or already configured", file=sys.stderr)
            return 1
        if args.label:
            pool.set_label(args.key.strip(), args.label)
        print(f"added {mask_key(args.key.strip())}")
        return 0
    if args.action == "remove":
        if not pool.remove_key(args.key):
            print("[smalltube] key not found", file=sys.stderr)
            return 1
        print(f"removed {mask_key(args.key)}")
        return 0
    if args.action == "label":
        pool.set_label(args.key, args.label)
        return 0
    if args.action == "limit":
        ctx.usage.set_limit(args.key, args.limit)
        return 0
    raise ValueError(f"unknown keys action {args.action!r}")


async def _run_validate_keys(ctx: AppContext) -> int:
    if not ctx.pool:
        raise NoCredentialAvailableError()
    settings = ctx.settings
    async with KeyRotatingClient(
        ctx.pool,
        ctx.usage,
        request_timeout=settings.request_timeout,
        resource_timeout=settings.resource_timeout,
    ) as client:
        results = await client.validate_keys(
            key_check_url(base_url=settings.youtube_api_base_url)
        )
    for key, valid in results.items():
        status = "ok " if valid else "BAD"
        print(f"{status}  {ctx.pool.label_for(key)}")
    return 0 if all(results.values()) else 1


def _run_usage(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.command == "reset-usage":
        ctx.usage.reset_all()
        print("usage tracking reset")
        return 0
    usage = ctx.usage
    print(f"total quota used: {usage.total_quota_used}")
    print(f"total data used:  {usage.total_bytes_used} bytes")
    for key in ctx.pool.keys:
        print(f"  {ctx.pool.label_for(key):<20} {usage.usage_for(key):>6}/{usage.limit_for(key)}")
    return 0


def _run_local_subscriptions(ctx: AppContext, args: argparse.Namespace) -> int:
    store = ctx.subscriptions
    if args.action == "remove":
        store.remove([args.channel_id])
    elif args.action == "clear":
        store.clear()
    elif args.action == "favorite":
        state = "favorited" if store.toggle_favorite(args.channel_id) else "unfavorited"
        print(f"{args.channel_id} {state}")
    elif args.action == "import":
        count = store.import_csv(Path(args.path).read_text(encoding="utf-8"))
        if not count:
            print("[smalltube] no valid channel ids found in CSV", file=sys.stderr)
            return 1
        print(f"imported {count} channel ids")
    return 0


def _run_history(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.clear:
        ctx.history.clear()
        return 0
    for entry in ctx.history.suggestions(args.prefix or ""):
        print(entry)
    return 0


def _run_cache_timeout(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.seconds is None:
        print(ctx.preferences.cache_timeout(ctx.settings.cache_timeout).title)
        return 0
    ctx.preferences.set_cache_timeout(CacheTimeout(args.seconds))
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

_NETWORK_COMMANDS = frozenset({"trending", "home", "channel", "search", "find-channel"})


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="smalltube",
        description="Browse YouTube through the Data API with pooled API keys.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("trending", "Most popular videos"), ("home", "Subscription feed")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--refresh", action="store_true", help="Bypass the cache.")

    channel = sub.add_parser("channel", help="Latest uploads of a channel")
    channel.add_argument("channel_id")
    channel.add_argument("--refresh", action="store_true", help="Bypass the cache.")

    search = sub.add_parser("search", help="Search videos")
    search.add_argument("query")

    find = sub.add_parser("find-channel", help="Search channels")
    find.add_argument("query")

    subs = sub.add_parser("subscriptions", help="Manage subscriptions")
    subs_actions = subs.add_subparsers(dest="action", required=True)
    subs_list = subs_actions.add_parser("list")
    subs_list.add_argument("--descending", action="store_true", help="Sort Z-A.")
    for action in ("add", "remove", "favorite"):
        subs_actions.add_parser(action).add_argument("channel_id")
    subs_actions.add_parser("clear")
    subs_actions.add_parser("import").add_argument("path", help="Takeout subscriptions.csv")

    keys = sub.add_parser("keys", help="Manage API keys")
    keys_actions = keys.add_subparsers(dest="action", required=True)
    keys_actions.add_parser("list")
    keys_add = keys_actions.add_parser("add")
    keys_add.add_argument("key")
    keys_add.add_argument("--label", default="")
    keys_actions.add_parser("remove").add_argument("key")
    keys_label = keys_actions.add_parser("label")
    keys_label.add_argument("key")
    keys_label.add_argument("label")
    keys_limit = keys_actions.add_parser("limit")
    keys_limit.add_argument("key")
    keys_limit.add_argument("limit", type=int)
    keys_actions.add_parser("validate", help="Check every key with a 1-unit request")

    sub.add_parser("usage", help="Show quota and data usage")
    sub.add_parser("reset-usage", help="Clear quota and data usage")

    history = sub.add_parser("history", help="Show recent searches")
    history.add_argument("prefix", nargs="?")
    history.add_argument("--clear", action="store_true")

    timeout = sub.add_parser("cache-timeout", help="Show or set the cache timeout")
    timeout.add_argument(
        "seconds",
        nargs="?",
        type=int,
        choices=[choice.value for choice in CacheTimeout],
    )

    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``smalltube`` command."""
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    ctx = build_context(settings)

    command = args.command
    try:
        if command in _NETWORK_COMMANDS or (
            command == "subscriptions" and args.action in ("list", "add")
        ):
            return asyncio.run(_run_network(ctx, args))
        if command == "subscriptions":
            return _run_local_subscriptions(ctx, args)
        if command == "keys" and args.action == "validate":
            return asyncio.run(_run_validate_keys(ctx))
        if command == "keys":
            return _run_keys(ctx, args)
        if command in ("usage", "reset-usage"):
            return _run_usage(ctx, args)
        if command == "history":
            return _run_history(ctx, args)
        if command == "cache-timeout":
            return _run_cache_timeout(ctx, args)
    except SmallTubeError as exc:
        return _alert(map_error_to_alert(exc))
    raise ValueError(f"unknown command {command!r}")


if __name__ == "__main__":
    sys.exit(main())
