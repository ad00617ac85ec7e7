"""SendShare command-line uploader entry point."""

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.shortcuts import print_formatted_text

from common.logging_config import setup_logging
from uploader.config import Config
from uploader.constants import CONFIG_PATH, GREEN, RESET, STYLE
from uploader.exceptions import (
    InvalidPasswordError,
    PasswordRequiredError,
    TransferClientError,
    TransferNotFoundError,
    UploadCancelledError,
)
from uploader.orchestrator import UploadOrchestrator, UploadProgress, collect_upload_items
from uploader.transfer_client import TransferClient
from uploader.utils import format_file_size

T = TypeVar("T")

PasswordPrompt = Callable[[Optional[str]], Awaitable[str]]


async def prompt_password(error: Optional[str] = None) -> str:
    """Ask for a transfer password with hidden input, showing ``error`` inline first."""
    if error:
        print_formatted_text(FormattedText([("class:error", error)]), style=STYLE)
    session: PromptSession = PromptSession(style=STYLE)
    return await session.prompt_async([("class:prompt", "Password: ")], is_password=True)


async def with_password(
    call: Callable[[Optional[str]], Awaitable[T]],
    password: Optional[str] = None,
    ask: PasswordPrompt = prompt_password,
) -> T:
    """
    Run ``call`` with a password, prompting when the transfer is locked and
    re-prompting with an inline error after a wrong password.
    """
    error = None
    while True:
        try:
            return await call(password)
        except PasswordRequiredError:
            error = None
        except InvalidPasswordError:
            error = "Incorrect password. Please try again."
        password = await ask(error)


def _print_progress(progress: UploadProgress) -> None:
    sys.stdout.write(
        f"\rUploading {progress.completed_files}/{progress.file_count} files: "
        f"{format_file_size(progress.sent_bytes)} / {format_file_size(progress.total_bytes)} "
        f"({GREEN}{progress.percentage:.1f}%{RESET})"
    )
    sys.stdout.flush()


async def cmd_upload(config: Config, args: argparse.Namespace) -> int:
    items = collect_upload_items(args.paths)
    if not items:
        print("Nothing to upload.")
        return 1

    password = args.password
    if args.ask_password:
        password = await prompt_password()

    async with TransferClient(config) as client:
        orchestrator = UploadOrchestrator(
            client,
            config.get_share_base_url(),
            max_concurrency=config.get_max_concurrent_uploads(),
            on_progress=_print_progress,
        )

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
        except NotImplementedError:
            pass

        try:
            result = await orchestrator.run(
                items,
                password=password,
                recipient_email=args.to,
                message=args.message,
            )
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                pass
            sys.stdout.write("\n")

    print(f"Transfer complete: {result.name} ({format_file_size(result.total_size)})")
    print(f"Share link: {result.share_link}")
    if result.locked:
        print("Password protected.")
    if args.to:
        print(f"E-mail {'sent to' if result.email_sent else 'not sent to'} {args.to}")
    return 0


async def cmd_list(config: Config, args: argparse.Namespace) -> int:
    async with TransferClient(config) as client:
        listing = await with_password(
            lambda password: client.list_transfer(args.transfer_id, password),
            args.password,
        )

    print(listing.get("name") or args.transfer_id)
    for f in listing.get("files", []):
        print(f"  {f['name']}  {format_file_size(f['size'])}  {f.get('contentType', '')}")
    if not listing.get("files"):
        print("  (no files)")
    return 0


async def cmd_download(config: Config, args: argparse.Namespace) -> int:
    async with TransferClient(config) as client:
        target = await with_password(
            lambda password: client.download_archive(args.transfer_id, Path(args.output), password),
            args.password,
        )

    print(f"Saved {target}")
    return 0


async def cmd_delete(config: Config, args: argparse.Namespace) -> int:
    if args.token:
        config.set_session_token(args.token)

    async with TransferClient(config) as client:
        deleted = await client.delete_transfer(args.transfer_id)

    print(f"Deleted transfer {args.transfer_id} ({deleted} objects)")
    return 0


COMMANDS = {
    "upload": cmd_upload,
    "list": cmd_list,
    "download": cmd_download,
    "delete": cmd_delete,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sendshare", description="Send files and folders as a shareable transfer")
    parser.add_argument("--config", default=str(CONFIG_PATH), help="Path to config JSON")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload files and folders")
    upload.add_argument("paths", nargs="+", help="Files or folders to send")
    upload.add_argument("--password", help="Protect the transfer with a password")
    upload.add_argument("--ask-password", action="store_true", help="Prompt for the password instead")
    upload.add_argument("--to", help="Recipient e-mail for a share notification")
    upload.add_argument("--message", help="Message included in the e-mail")

    list_cmd = subparsers.add_parser("list", help="List the files of a transfer")
    list_cmd.add_argument("transfer_id")
    list_cmd.add_argument("--password")

    download = subparsers.add_parser("download", help="Download a transfer as a ZIP")
    download.add_argument("transfer_id")
    download.add_argument("--output", default=".", help="Directory to save the archive in")
    download.add_argument("--password")

    delete = subparsers.add_parser("delete", help="Delete a transfer you created")
    delete.add_argument("transfer_id")
    delete.add_argument("--token", help="Session token to store and use")

    return parser


def main(argv: Optional[list] = None) -> int:
    """Entry point for the uploader CLI."""
    args = build_parser().parse_args(argv)

    log_level = 'DEBUG' if args.debug else os.getenv('LOG_LEVEL', 'WARNING')
    logger = setup_logging('uploader', log_level=log_level)

    config = Config(Path(args.config))
    handler = COMMANDS[args.command]

    try:
        return asyncio.run(handler(config, args))
    except UploadCancelledError:
        print("Upload cancelled.")
        return 130
    except (EOFError, KeyboardInterrupt):
        print("Aborted.")
        return 130
    except TransferNotFoundError:
        print("Transfer not found or expired.")
        return 2
    except TransferClientError as e:
        logger.debug(f"Command {args.command} failed: {e}", exc_info=True)
        print(f"Error: {e}")
        return 1
    except httpx.HTTPError as e:
        logger.debug(f"Command {args.command} failed: {e}", exc_info=True)
        print(f"Cannot reach the transfer service: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
