"""Configuration management for the SendShare uploader."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional


class Config:
    """Manages uploader configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "server_url": os.environ.get("SENDSHARE_SERVER_URL", "http://localhost:8000"),
        "share_base_url": os.environ.get("SENDSHARE_SHARE_BASE_URL", "http://localhost:5173"),
        "timeout": 30,
        "max_concurrent_uploads": 4,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.sendshare/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.sendshare' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError):
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError:
                    pass
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError:
                pass
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError:
            pass

    def get_session_token(self) -> Optional[str]:
        """
        Get stored session token.

        Returns:
            Session token string or None if not logged in
        """
        return self.data.get('session_token')

    def set_session_token(self, token: Optional[str]) -> None:
        """
        Set session token and save to file.

        Args:
            token: Session id issued by the account service, or None to forget it
        """
        if token:
            self.data['session_token'] = token
        else:
            self.data.pop('session_token', None)
        self.save()

    def get_base_url(self) -> str:
        """
        Get transfer service base URL.

        Returns:
            Base URL string (e.g., "http://localhost:8000")
        """
        return str(self.data.get('server_url', 'http://localhost:8000')).rstrip('/')

    def get_share_base_url(self) -> str:
        """
        Get the base URL recipients open share links under.

        Returns:
            Base URL string; links are built as "{base}/share/{transfer_id}"
        """
        return str(self.data.get('share_base_url') or self.get_base_url()).rstrip('/')

    def get_timeout(self) -> int:
        return self.data.get('timeout', 30)

    def get_max_concurrent_uploads(self) -> int:
        return max(1, int(self.data.get('max_concurrent_uploads', 4)))
