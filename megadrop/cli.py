"""Command line interface for megadrop."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import httpx
from rich.logging import RichHandler

from . import __version__
from .context import UploadContext
from .models import BatchFile, SourceLocation, UploadConfig, UploadOptions
from .cli_progress import (
    echo,
    render_batch_summary,
    render_configuration_summary,
    render_health,
    render_upload_results,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_MONITOR_INTERVAL = 10.0
DEFAULT_MONITOR_ATTEMPTS = 60


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure the root logger with a RichHandler.

    Default level comes from LOG_LEVEL (INFO when unset); --silent keeps
    only errors. Returns the effective level name.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    if silent:
        level = logging.ERROR
    elif debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL")
        level = getattr(logging, (env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
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


def _mega_context(config: UploadConfig) -> UploadContext:
    try:
        from .services.mega_store import MegaStore
    except ImportError as exc:
        raise CLIError(f"MEGA support is not installed (pip install 'megadrop[mega]'): {exc}") from exc
    return UploadContext(MegaStore(config), config)


def _read_files(paths: Sequence[Path]) -> List[BatchFile]:
    files = []
    for path in paths:
        if not path.is_file():
            raise CLIError(f"not a file: {path}")
        files.append(BatchFile(data=path.read_bytes(), file_name=path.name))
    return files


async def _run_upload(
    device_id: str,
    paths: Sequence[Path],
    source: str,
    overwrite: bool,
    config: UploadConfig,
    context_factory: Callable[[UploadConfig], UploadContext] = _mega_context,
) -> int:
    files = _read_files(paths)
    location = SourceLocation.parse(source)
    if location is None:
        raise CLIError(f"unknown source location: {source}")

    context = context_factory(config)
    if not await context.start():
        raise CLIError("could not connect to MEGA (check MEGA_EMAIL / MEGA_PASSWORD)")

    try:
        options = UploadOptions(overwrite=overwrite)
        if len(files) == 1:
            result = await context.upload_file(files[0].data, files[0].file_name, device_id, location, options)
            results = [result]
        else:
            batch = await context.upload_multiple_files(files, device_id, location, options)
            results = batch.results
            render_batch_summary(batch.summary.to_dict())
        render_upload_results(results)
        return 0 if all(r.success for r in results) else 1
    finally:
        await context.close()


async def _run_monitor(
    url: str,
    interval: float,
    max_attempts: int,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    health_url = url.rstrip("/") + "/health"
    async with httpx.AsyncClient(timeout=5.0, transport=transport) as client:
        for attempt in range(1, max_attempts + 1):
            try:
                response = await client.get(health_url)
            except httpx.HTTPError as exc:
                logger.warning("Attempt %d/%d: %s", attempt, max_attempts, exc)
            else:
                try:
                    payload = response.json()
                except ValueError:
                    payload = {}
                render_health(attempt, max_attempts, response.status_code, payload)
                if response.status_code == 200 and payload.get("status"):
                    return 0

            if attempt < max_attempts:
                await asyncio.sleep(interval)

    echo(f"[red]Deployment not live after {max_attempts} attempts: {health_url}[/red]")
    return 1


def _serve(host: str, port: int, config: UploadConfig) -> int:
    import uvicorn

    from .server import create_app

    app = create_app(config=config, context_factory=_mega_context)
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="megadrop",
        description="Receive device uploads and store them in MEGA.",
    )
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
    parser.add_argument("--version", action="version", version=f"megadrop {__version__}")

    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("serve", help="Run the HTTP upload service")
    serve.add_argument("--host", default=os.getenv("HOST", DEFAULT_HOST))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", DEFAULT_PORT)))

    upload = commands.add_parser("upload", help="Upload local files for a device")
    upload.add_argument("device_id", help="Device identifier (3-50 chars: letters, digits, _ or -)")
    upload.add_argument("paths", nargs="+", type=Path, help="Files to upload")
    upload.add_argument(
        "-s",
        "--source",
        default=SourceLocation.CAMERA.value,
        help="Source location (DCIM_CAMERA, DCIM_SNAPCHAT, SNAPCHAT_ROOT)",
    )
    upload.add_argument("--overwrite", action="store_true", help="Upload even if the stored name exists")

    monitor = commands.add_parser("monitor", help="Poll a deployment until /health answers")
    monitor.add_argument("url", help="Base URL of the deployment")
    monitor.add_argument("--interval", type=float, default=DEFAULT_MONITOR_INTERVAL)
    monitor.add_argument("--max-attempts", type=int, default=DEFAULT_MONITOR_ATTEMPTS)
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

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = UploadConfig.from_env()
    except ValueError as exc:
        print(f"ERROR: invalid configuration: {exc}", file=sys.stderr)
        return 1

    if args.command != "monitor":
        render_configuration_summary(
            {
                "Command": args.command,
                "MEGA Account": config.email or "(missing)",
                "Base Folder": config.base_folder_name,
                "Max File Size": f"{config.max_file_size // (1024 * 1024)} MB",
                "Environment": config.environment,
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        if args.command == "serve":
            return _serve(args.host, args.port, config)
        if args.command == "upload":
            return asyncio.run(
                _run_upload(
                    device_id=args.device_id,
                    paths=[Path(p).expanduser() for p in args.paths],
                    source=args.source,
                    overwrite=args.overwrite,
                    config=config,
                )
            )
        return asyncio.run(_run_monitor(args.url, args.interval, args.max_attempts))
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
