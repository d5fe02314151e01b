"""Command line interface for video_uploader package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import httpx
from rich.logging import RichHandler

from . import __version__
from .cli_progress import (
    BatchUploadDisplay,
    render_batch_summary,
    render_configuration_summary,
    render_gallery,
)
from .errors import UploadError, ValidationError
from .models import UploadConfig, UploadOutcome, VideoFile
from .orchestrator import UploadOrchestrator
from .orchestrator.file_collector import FileCollector
from .services import GalleryClient

MB = 1024 * 1024
DEFAULT_BASE_URL = "http://127.0.0.1:3000"


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is
    provided. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)
    env_level = os.getenv("LOG_LEVEL")

    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level).upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _parse_size_mb(value: Optional[str]) -> Optional[int]:
    """Megabytes (fractions allowed) to bytes. Empty, 0 or negative means unlimited."""
    if value is None or str(value).strip() == "":
        return None
    try:
        size_mb = float(value)
    except ValueError as exc:
        raise CLIError(f"invalid size in MB: {value!r}") from exc
    if size_mb <= 0:
        return None
    return int(size_mb * MB)


def _parse_int(value: Optional[str], name: str) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    try:
        parsed = int(value)
    except ValueError as exc:
        raise CLIError(f"invalid {name}: {value!r}") from exc
    return parsed if parsed > 0 else None


def _parse_float(value: Optional[str], name: str) -> float:
    if value is None or str(value).strip() == "":
        return 0.0
    try:
        return max(0.0, float(value))
    except ValueError as exc:
        raise CLIError(f"invalid {name}: {value!r}") from exc


def _build_config(args: argparse.Namespace) -> UploadConfig:
    """Flags win over environment variables, which win over defaults."""
    max_size = args.max_size if args.max_size is not None else os.getenv("VIDEO_UPLOAD_MAX_SIZE_MB")
    parallel = args.parallel if args.parallel is not None else os.getenv("VIDEO_UPLOAD_PARALLEL")
    delay = args.completion_delay if args.completion_delay is not None else os.getenv(
        "VIDEO_UPLOAD_COMPLETION_DELAY"
    )
    return UploadConfig(
        base_url=args.base_url or os.getenv("VIDEO_UPLOAD_BASE_URL") or DEFAULT_BASE_URL,
        upload_endpoint=args.endpoint or os.getenv("VIDEO_UPLOAD_ENDPOINT") or "/api/upload",
        gallery_endpoint=os.getenv("VIDEO_GALLERY_ENDPOINT") or "/api/videos",
        max_file_size=_parse_size_mb(max_size),
        accept=None if args.any_type else "video/*",
        max_parallel=_parse_int(parallel, "parallel count"),
        completion_delay=_parse_float(delay, "completion delay"),
    )


async def _run_upload(
    sources: List[Path],
    config: UploadConfig,
    retries: int = 0,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    live: Optional[bool] = None,
) -> int:
    files = FileCollector(config).expand(sources)
    if not files:
        raise CLIError("no video files found in the given sources")

    try:
        payloads = [VideoFile.from_path(path) for path in files]
    except OSError as exc:
        raise CLIError(f"cannot read source file: {exc}") from exc

    outcomes: List[UploadOutcome] = []

    async with UploadOrchestrator(config, http_transport=http_transport) as uploader:
        try:
            uploader.registry.add(payloads)
        except ValidationError as exc:
            raise CLIError(str(exc)) from exc

        display = BatchUploadDisplay(uploader.registry, live=live)
        uploader.on_task_complete(display.on_task_complete)
        uploader.on_task_fail(display.on_task_fail)
        uploader.on_complete(outcomes.extend)

        with display:
            result = await uploader.run_batch()

            for attempt in range(1, retries + 1):
                failed = [task.id for task in uploader.registry.tasks() if task.failed]
                if not failed:
                    break
                logging.getLogger(__name__).info(
                    f"Retry {attempt}/{retries}: {len(failed)} failed file(s)"
                )
                await asyncio.gather(*(uploader.retry(task_id) for task_id in failed))

    render_batch_summary(result, outcomes)
    return 0 if len(outcomes) == result.total else 1


async def _run_list(
    config: UploadConfig,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    async with GalleryClient(config, transport=http_transport) as gallery:
        try:
            items = await gallery.list_videos()
        except UploadError as exc:
            raise CLIError(f"cannot list gallery: {exc}") from exc
    render_gallery(items)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="video-up",
        description="Upload videos to a video gallery service and list the gallery.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Video files or folders to upload")
    parser.add_argument(
        "-u",
        "--base-url",
        default=None,
        help=f"Gallery service URL (default from VIDEO_UPLOAD_BASE_URL or {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "-e",
        "--endpoint",
        default=None,
        help="Upload endpoint path (default /api/upload)",
    )
    parser.add_argument(
        "-m",
        "--max-size",
        default=None,
        help="Reject files larger than this many MB (default from VIDEO_UPLOAD_MAX_SIZE_MB, unlimited)",
    )
    parser.add_argument(
        "-p",
        "--parallel",
        default=None,
        help="Maximum simultaneous uploads (default from VIDEO_UPLOAD_PARALLEL, unlimited)",
    )
    parser.add_argument(
        "-r",
        "--retries",
        type=int,
        default=0,
        help="Retry failed uploads this many times",
    )
    parser.add_argument(
        "--completion-delay",
        default=None,
        help="Seconds to keep the final status on screen before finishing",
    )
    parser.add_argument(
        "--any-type",
        action="store_true",
        help="Accept files that are not detected as video",
    )
    parser.add_argument("-l", "--list", action="store_true", help="List the gallery instead of uploading")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"video-up {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.sources and not args.list:
        parser.print_help()
        return 0

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    sources = [Path(source).expanduser() for source in args.sources]
    missing = [source for source in sources if not source.exists()]
    if missing:
        print(f"ERROR: source does not exist: {missing[0]}", file=sys.stderr)
        return 1

    max_size = f"{config.max_file_size / MB:.2f} MB" if config.max_file_size else "unlimited"
    render_configuration_summary(
        {
            "Mode": "list" if args.list else "upload",
            "Sources": ", ".join(str(s) for s in sources) or "-",
            "Service": config.base_url,
            "Endpoint": config.gallery_endpoint if args.list else config.upload_endpoint,
            "Max Size": max_size,
            "Parallel": config.max_parallel or "all",
            "Retries": args.retries,
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        if args.list:
            return asyncio.run(_run_list(config))
        return asyncio.run(_run_upload(sources, config, retries=max(args.retries, 0)))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
