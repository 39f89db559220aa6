"""
Command line entry point for veo3ops.

Usage:
    veo3ops generate "a koi pond at dawn" --wait --output videos/
    veo3ops status models/veo-3.1-generate-preview/operations/abc123
    veo3ops wait OPERATION_ID --download clip.mp4
    veo3ops download OPERATION_ID -o videos/clip.mp4
    veo3ops cancel OPERATION_ID --json
"""

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from veo3ops.client import GenerationRequest, VeoClient
from veo3ops.config import Settings
from veo3ops.errors import Veo3OpsError
from veo3ops.operations import (
    Downloader,
    GeneratedVideo,
    Operation,
    OperationStatus,
    OperationStore,
    Poller,
)
from veo3ops.utils.formatting import format_file_size
from veo3ops.utils.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(
        prog="veo3ops",
        description="Track, poll and download Veo video generation operations",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", parents=[common], help="Submit a text-to-video job")
    generate.add_argument("prompt", help="Text prompt")
    generate.add_argument("--model", help="Model name (defaults to VEO3_DEFAULT_MODEL)")
    generate.add_argument("--aspect-ratio", default="16:9", choices=["16:9", "9:16"])
    generate.add_argument("--resolution", default="720p", choices=["720p", "1080p"])
    generate.add_argument("--duration", type=int, default=8, choices=[4, 6, 8])
    generate.add_argument("--negative-prompt", help="What the video should avoid")
    generate.add_argument("--seed", type=int, help="Seed for reproducible output")
    generate.add_argument("--wait", action="store_true", help="Wait for completion and download")
    generate.add_argument("--output", "-o", help="Download path or directory (with --wait)")

    status = subparsers.add_parser("status", parents=[common], help="Show an operation's status")
    status.add_argument("operation_id")

    wait = subparsers.add_parser("wait", parents=[common], help="Poll an operation until it finishes")
    wait.add_argument("operation_id")
    wait.add_argument("--download", metavar="PATH", help="Download the video when done")

    download = subparsers.add_parser("download", parents=[common], help="Download a finished video")
    download.add_argument("operation_id")
    download.add_argument("--output", "-o", help="File path or directory")

    cancel = subparsers.add_parser("cancel", parents=[common], help="Cancel a running operation")
    cancel.add_argument("operation_id")

    return parser.parse_args(argv)


def build_components(
    settings: Settings,
    show_progress: bool,
) -> Tuple[VeoClient, OperationStore, Poller, Downloader]:
    """Wire client, store, poller and downloader from settings."""
    client = VeoClient(
        api_key=settings.require_api_key(),
        base_url=settings.base_url,
        timeout=settings.request_timeout_seconds,
        debug=settings.debug,
    )
    store = OperationStore(client)
    poller = Poller(client, store, settings.polling_config())
    downloader = Downloader(
        api_key=settings.api_key,
        timeout=settings.download_timeout_seconds,
        retry_delay=settings.download_retry_delay_seconds,
        show_progress=show_progress,
    )
    return client, store, poller, downloader


def resolve_output_path(operation_id: str, output: Optional[str], output_directory: str) -> Path:
    """
    Pick the file a video is saved to.

    A path ending in .mp4 is used as is; anything else is treated as a
    directory and receives "<last segment of the operation ID>.mp4".
    """
    filename = f"{operation_id.rstrip('/').split('/')[-1] or 'video'}.mp4"
    if output:
        path = Path(output)
        if path.suffix.lower() == ".mp4":
            return path
        return path / filename
    return Path(output_directory) / filename


def _emit(data: Dict[str, Any], as_json: bool, lines: List[str]) -> None:
    if as_json:
        print(json.dumps(data, indent=2, default=str))
    else:
        for line in lines:
            print(line)


def _operation_lines(op: Operation) -> List[str]:
    lines = [f"Operation: {op.id}", f"Status:    {op.status.value}"]
    if op.progress:
        lines.append(f"Progress:  {op.progress * 100:.0f}%")
    if op.video_uri:
        lines.append(f"Video URI: {op.video_uri}")
    if op.error:
        lines.append(f"Error:     {op.error}")
    return lines


def _video_lines(video: GeneratedVideo) -> List[str]:
    return [
        f"Saved to: {video.file_path}",
        f"Size:     {format_file_size(video.file_size_bytes)}",
    ]


def _download(
    settings: Settings,
    downloader: Downloader,
    op: Operation,
    output: Optional[str],
    cancel_event: threading.Event,
) -> GeneratedVideo:
    path = resolve_output_path(op.id, output, settings.output_directory)
    return downloader.download_video_with_retry(
        op, path, settings.download_max_attempts, cancel_event
    )


def run(args: argparse.Namespace, settings: Settings, cancel_event: threading.Event) -> int:
    """Execute the parsed command. Returns the process exit code."""
    client, store, poller, downloader = build_components(settings, show_progress=not args.json)

    if args.command == "generate":
        request = GenerationRequest(
            prompt=args.prompt,
            model=args.model or settings.default_model,
            aspect_ratio=args.aspect_ratio,
            resolution=args.resolution,
            duration_seconds=args.duration,
            negative_prompt=args.negative_prompt,
            seed=args.seed,
        )
        op = store.submit(request)
        if not args.wait:
            _emit(op.to_dict(), args.json, _operation_lines(op))
            return 0
        op = poller.wait_for_completion(op.id, show_progress=not args.json, cancel_event=cancel_event)
        if op.video_uri:
            video = _download(settings, downloader, op, args.output, cancel_event)
            _emit(video.to_dict(), args.json, _video_lines(video))
            return 0
        _emit(op.to_dict(), args.json, _operation_lines(op))
        return 1

    # Remaining commands start from the remote view of an existing operation
    current = client.get_operation(args.operation_id)
    current.id = args.operation_id
    store.add(current)

    if args.command == "status":
        op = store.get(args.operation_id)
        _emit(op.to_dict(), args.json, _operation_lines(op))
        return 0

    if args.command == "wait":
        op = poller.wait_for_completion(
            args.operation_id, show_progress=not args.json, cancel_event=cancel_event
        )
        if args.download and op.video_uri:
            video = _download(settings, downloader, op, args.download, cancel_event)
            _emit(video.to_dict(), args.json, _video_lines(video))
        else:
            _emit(op.to_dict(), args.json, _operation_lines(op))
        return 0 if op.status == OperationStatus.DONE else 1

    if args.command == "download":
        op = store.get(args.operation_id)
        video = _download(settings, downloader, op, args.output, cancel_event)
        _emit(video.to_dict(), args.json, _video_lines(video))
        return 0

    if args.command == "cancel":
        op = store.cancel(args.operation_id, cancel_event)
        _emit(op.to_dict(), args.json, _operation_lines(op))
        return 0

    raise ValueError(f"unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the veo3ops command."""
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    settings = Settings.from_env()
    cancel_event = threading.Event()

    try:
        settings.validate()
        return run(args, settings, cancel_event)
    except KeyboardInterrupt:
        cancel_event.set()
        print("\nInterrupted", file=sys.stderr)
        return 130
    except (Veo3OpsError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
