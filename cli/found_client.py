"""CLI client for claiming and publishing found.as paths."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import sys
from pathlib import Path
from urllib.parse import urlparse

from foundas.config import Settings
from foundas.exceptions import FoundError
from foundas.rendering.renderer import RenderError
from foundas.schemas.content import ContentRecord, ContentType, RawUpload
from foundas.services.path_service import is_valid_redirect, public_url, validate_path
from foundas.services.sync_service import Settled, SyncController
from foundas.services.transport_service import SingleFlightTransport

PASSWORD_ENV = "FOUNDAS_PASSWORD"
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure CLI logging."""
    level = logging.DEBUG if debug else logging.WARNING
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(level=level, format=fmt, stream=sys.stderr, force=True)
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://found.as)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def read_password(prompt: str = "Password: ") -> str:
    """Password from the environment, or prompt for it."""
    from_env = os.environ.get(PASSWORD_ENV)
    if from_env is not None:
        return from_env
    return getpass.getpass(prompt)


def describe_state(controller: SyncController) -> str:
    """Human-readable claim and ownership status."""
    state = controller.state
    if not isinstance(state, Settled):
        return "unknown"
    if not state.claimed:
        return "unclaimed (this password will own it)"
    if state.owned:
        return "claimed, password accepted"
    return "claimed, wrong password"


def build_record(
    args: argparse.Namespace, base: ContentRecord | None = None
) -> tuple[ContentRecord, RawUpload | None]:
    """Content record (and upload) described by the publish options.

    The chosen tag and its source are applied on top of *base*, so the
    buffers of the other tags survive the publish.
    """
    record = base if base is not None else ContentRecord()
    if args.redirect is not None:
        if not is_valid_redirect(args.redirect):
            raise ValueError(f"Not a valid redirect URL: {args.redirect}")
        return record.with_type(ContentType.REDIRECT).with_source(args.redirect), None
    if args.markdown is not None:
        text = Path(args.markdown).read_text(encoding="utf-8")
        return record.with_type(ContentType.MARKDOWN_PAGE).with_source(text), None
    if args.html is not None:
        text = Path(args.html).read_text(encoding="utf-8")
        return record.with_type(ContentType.HTML_PAGE).with_source(text), None
    upload = RawUpload.from_path(Path(args.file), mime=args.mime, max_bytes=args.max_upload_bytes)
    return record.with_type(ContentType.BYTES), upload


async def _settled_controller(
    transport: SingleFlightTransport, path: str, password: str, settings: Settings
) -> SyncController:
    controller = SyncController(
        transport,
        path,
        password,
        debounce_seconds=0,
        max_path_length=settings.max_path_length,
    )
    controller.start()
    await controller.settle()
    if controller.last_error is not None:
        raise controller.last_error
    return controller


async def run_command(
    args: argparse.Namespace, settings: Settings, transport: SingleFlightTransport
) -> int:
    """Execute one sub-command. Returns the process exit code."""
    path: str = args.path
    site = settings.server_url

    if args.command == "status":
        controller = await _settled_controller(transport, path, read_password(), settings)
        print(f"{public_url(path, site)}: {describe_state(controller)}")
        return 0

    if args.command == "get":
        controller = await _settled_controller(transport, path, read_password(), settings)
        if controller.owned is False:
            print("Error: wrong password for this path")
            return 1
        if controller.claimed is False:
            print(f"{public_url(path, site)} is unclaimed")
            return 0
        record = controller.record
        print(f"type: {record.type.name.lower()}")
        if record.source is not None:
            print(record.source)
        return 0

    if args.command == "publish":
        controller = await _settled_controller(transport, path, read_password(), settings)
        if not controller.owned:
            print("Error: wrong password for this path")
            return 1
        controller.record, upload = build_record(args, controller.record)
        if not await controller.publish(upload):
            print("Error: publish was superseded")
            return 1
        print(f"Published {public_url(path, site)}")
        return 0

    if args.command == "rotate":
        controller = await _settled_controller(
            transport, path, read_password("Current password: "), settings
        )
        if not controller.owned:
            print("Error: wrong password for this path")
            return 1
        new_password = read_password_twice()
        if not await controller.rotate_password(new_password):
            print("Error: password rotation was superseded")
            return 1
        await controller.settle()
        print(f"Password rotated for {public_url(path, site)}: {describe_state(controller)}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def read_password_twice() -> str:
    """Prompt for a new password with confirmation."""
    new_password = getpass.getpass("New password: ")
    if getpass.getpass("Repeat new password: ") != new_password:
        raise ValueError("Passwords do not match")
    return new_password


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="found-as",
        description="Claim a found.as path and publish a redirect, page or file under it",
    )
    parser.add_argument("--server", "-s", help="Server URL (default: FOUNDAS_SERVER_URL)")
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")
    for name, help_text in (
        ("status", "Show whether a path is claimed and the password accepted"),
        ("get", "Print the stored content of a path"),
        ("url", "Print the public URL of a path"),
        ("rotate", "Change the password of a path"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("path", help="Path to claim, e.g. 'my-page'")

    publish = subparsers.add_parser("publish", help="Publish content under a path")
    publish.add_argument("path", help="Path to claim, e.g. 'my-page'")
    source = publish.add_mutually_exclusive_group(required=True)
    source.add_argument("--redirect", metavar="URL", help="Redirect visitors to URL")
    source.add_argument("--markdown", metavar="FILE", help="Serve a markdown page")
    source.add_argument("--html", metavar="FILE", help="Serve an HTML page")
    source.add_argument("--file", metavar="FILE", help="Serve a file (max 1MB)")
    publish.add_argument("--mime", help="MIME type for --file (default: guessed)")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings()
    _configure_logging(args.debug or settings.debug)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if not validate_path(args.path, settings.max_path_length):
        print(f"Error: invalid path {args.path!r}")
        sys.exit(1)

    try:
        server_url = validate_server_url(args.server or settings.server_url, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)
    settings = settings.model_copy(update={"server_url": server_url})

    if args.command == "url":
        print(public_url(args.path, server_url))
        return

    args.max_upload_bytes = settings.max_upload_bytes

    async def _run() -> int:
        async with SingleFlightTransport.from_settings(settings) as transport:
            return await run_command(args, settings, transport)

    try:
        exit_code = asyncio.run(_run())
    except (FoundError, RenderError, ValueError, OSError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}")
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
