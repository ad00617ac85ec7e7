"""Uploader constants and configuration."""

from pathlib import Path

from prompt_toolkit.styles import Style

CONFIG_PATH = Path.home() / ".sendshare" / "config.json"

UPLOAD_CHUNK_SIZE = 64 * 1024

DEFAULT_TRANSFER_NAME = "Untitled Transfer"

STYLE = Style.from_dict(
    {
        "prompt": "#F45935 bold",
        "error": "#ff0000",
    }
)

GREEN = "\033[32m"
RESET = "\033[0m"
