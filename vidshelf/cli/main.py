"""Command line front-end for managing the library and playlists."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from ..app import MediaCore
from ..common.config import Config, default_config_path
from ..common.logging_config import bind_context
from ..core.exceptions import FilesystemError
from ..core.library import canonical_location
from ..core.models import SortOption, Video

logger = structlog.get_logger(__name__)


def _video_id(value: str) -> str:
    """Accept either an identity or a (possibly relative) path to the file."""
    return canonical_location(Path(value))


def _print_videos(videos: List[Video], liked: set) -> None:
    if not videos:
        print("No videos found")
        return

    print(f"{'Name':<40} {'Length':>8} {'Size MB':>8} {'Plays':>5}  {'Liked':<5}")
    print("-" * 72)
    for video in videos:
        size_mb = video.size / (1024 * 1024)
        liked_str = "*" if video.id in liked else ""
        print(
            f"{video.name[:40]:<40} {video.duration_formatted:>8} {size_mb:>8.1f} "
            f"{video.watch_count:>5}  {liked_str:<5}"
        )


async def scan(core: MediaCore) -> int:
    before = len(core.library)
    videos = await core.library.scan()
    print(f"Indexed {len(videos)} videos ({len(videos) - before:+d}) under {core.library.root}")
    return 0


async def list_videos(
    core: MediaCore,
    sort: str,
    ascending: Optional[bool],
    search: str,
    liked_only: bool,
) -> int:
    videos = core.library.search(search, SortOption(sort), ascending)
    if liked_only:
        videos = [v for v in videos if core.settings.is_liked(v.id)]
    _print_videos(videos, set(core.settings.liked_ids))
    return 0


async def delete_video(core: MediaCore, video_id: str) -> int:
    video = core.library.get(video_id)
    if not await core.library.delete(video_id):
        print(f"Not in library: {video_id}")
        return 0
    print(f"Deleted {video.name}")
    return 0


async def toggle_like(core: MediaCore, video_id: str) -> int:
    if video_id not in core.library:
        print(f"Error: Not in library: {video_id}", file=sys.stderr)
        return 1
    liked = await core.settings.toggle_like(video_id)
    print(f"{'Liked' if liked else 'Unliked'} {core.library.get(video_id).name}")
    return 0


async def import_files(core: MediaCore, paths: List[Path]) -> int:
    before = len(core.library)
    videos = await core.library.import_files(paths)
    print(f"Library now has {len(videos)} videos ({len(videos) - before:+d})")
    return 0


async def playlist_command(core: MediaCore, args: argparse.Namespace) -> int:
    store = core.playlists

    if args.playlist_command == "create":
        playlist = await store.create(args.name)
        print(f"Created playlist '{playlist.name}' ({playlist.id})")
    elif args.playlist_command == "rename":
        if await store.rename(args.playlist_id, args.name) is None:
            print(f"No playlist {args.playlist_id}")
    elif args.playlist_command == "delete":
        if not await store.delete(args.playlist_id):
            print(f"No playlist {args.playlist_id}")
    elif args.playlist_command == "add":
        video_ids = [_video_id(v) for v in args.videos]
        unknown = [v for v in video_ids if v not in core.library]
        if unknown:
            print(f"Error: Not in library: {', '.join(unknown)}", file=sys.stderr)
            return 1
        playlist = await store.add_videos(video_ids, args.playlist_id)
        if playlist is None:
            print(f"No playlist {args.playlist_id}")
        else:
            print(f"'{playlist.name}' now has {len(playlist.video_ids)} videos")
    elif args.playlist_command == "remove":
        await store.remove_video(_video_id(args.video), args.playlist_id)
    elif args.playlist_command == "show":
        if args.playlist_id:
            playlist = store.get(args.playlist_id)
            if playlist is None:
                print(f"No playlist {args.playlist_id}")
                return 0
            print(f"{playlist.name} ({playlist.id})")
            _print_videos(core.library.resolve(playlist.video_ids), set(core.settings.liked_ids))
        else:
            if not store.playlists:
                print("No playlists")
            for playlist in store.playlists:
                print(f"{playlist.id}  {playlist.name}  ({len(playlist.video_ids)} videos)")
    return 0


def init_config(path: Optional[Path], force: bool) -> int:
    path = path or default_config_path()
    if path.exists() and not force:
        print(f"Error: {path} already exists (use --force to overwrite)", file=sys.stderr)
        return 1
    Config().to_yaml(path)
    print(f"Wrote default configuration to {path}")
    return 0


async def run(args: argparse.Namespace) -> int:
    core = await MediaCore.open(config_path=args.config)
    bind_context(command=args.command)

    try:
        if args.command == "scan":
            return await scan(core)
        if args.command == "list":
            ascending = None
            if args.desc:
                ascending = False
            elif args.asc:
                ascending = True
            return await list_videos(core, args.sort, ascending, args.search, args.liked)
        if args.command == "delete":
            return await delete_video(core, _video_id(args.video))
        if args.command == "like":
            return await toggle_like(core, _video_id(args.video))
        if args.command == "import":
            return await import_files(core, args.files)
        if args.command == "playlist":
            return await playlist_command(core, args)
    except FilesystemError as e:
        logger.error("cli_command_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vidshelf",
        description="Manage a local video library and its playlists",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config.yaml (default: $VIDSHELF_CONFIG_DIR/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("scan", help="Scan the library directory for videos")

    list_parser = subparsers.add_parser("list", help="List indexed videos")
    list_parser.add_argument(
        "--sort",
        choices=[option.value for option in SortOption],
        default=SortOption.NAME.value,
        help="Sort key (default: name)",
    )
    direction = list_parser.add_mutually_exclusive_group()
    direction.add_argument("--asc", action="store_true", help="Force ascending order")
    direction.add_argument("--desc", action="store_true", help="Force descending order")
    list_parser.add_argument("--search", "-s", default="", help="Filter by name")
    list_parser.add_argument("--liked", action="store_true", help="Only liked videos")

    delete_parser = subparsers.add_parser("delete", help="Delete a video file from disk and the library")
    delete_parser.add_argument("video", help="Video path")

    like_parser = subparsers.add_parser("like", help="Toggle a video's liked state")
    like_parser.add_argument("video", help="Video path")

    import_parser = subparsers.add_parser("import", help="Copy video files into the library")
    import_parser.add_argument("files", nargs="+", type=Path, help="Files to import")

    playlist_parser = subparsers.add_parser("playlist", help="Manage playlists")
    playlist_sub = playlist_parser.add_subparsers(dest="playlist_command", required=True)

    create = playlist_sub.add_parser("create", help="Create an empty playlist")
    create.add_argument("name")

    rename = playlist_sub.add_parser("rename", help="Rename a playlist")
    rename.add_argument("playlist_id")
    rename.add_argument("name")

    delete = playlist_sub.add_parser("delete", help="Delete a playlist")
    delete.add_argument("playlist_id")

    add = playlist_sub.add_parser("add", help="Append videos to a playlist")
    add.add_argument("playlist_id")
    add.add_argument("videos", nargs="+")

    remove = playlist_sub.add_parser("remove", help="Remove a video from a playlist")
    remove.add_argument("playlist_id")
    remove.add_argument("video")

    show = playlist_sub.add_parser("show", help="Show one playlist, or list all")
    show.add_argument("playlist_id", nargs="?")

    init_parser = subparsers.add_parser("init-config", help="Write a default config.yaml")
    init_parser.add_argument("--path", type=Path, help="Destination (default: config_dir/config.yaml)")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the vidshelf command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "init-config":
        sys.exit(init_config(args.path, args.force))

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
