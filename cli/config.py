"""Configuration management for the resumable CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional

from common.constants import (
    CHUNK_SIZE_BYTES,
    DEFAULT_TARGET,
    MAX_CHUNK_RETRIES,
    SIMULTANEOUS_UPLOADS,
)
from common.logging_config import get_logger
from uploader.config import UploaderOptions

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "target": DEFAULT_TARGET,
        "test_target": None,
        "chunk_size": CHUNK_SIZE_BYTES,
        "simultaneous_uploads": SIMULTANEOUS_UPLOADS,
        "test_chunks": True,
        "prioritize_first_and_last_chunk": False,
        "max_chunk_retries": MAX_CHUNK_RETRIES,
        "chunk_retry_interval": 1.0,
        "method": "multipart",
        "request_timeout": None,
    }

    ENV_OVERRIDES = {
        "RESUMABLE_TARGET": "target",
        "RESUMABLE_TEST_TARGET": "test_target",
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.resumable/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Environment overrides are applied on top of the file but never
        written back to it.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.resumable' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config = self.DEFAULT_CONFIG.copy()
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Corrupted config {self.config_path}, backing up to {backup_path}: {e}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError:
                    logger.warning(f"Could not back up {self.config_path}")
                config = self.DEFAULT_CONFIG.copy()
        else:
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError:
                logger.warning(f"Could not write default config to {self.config_path}")

        for env_name, key in self.ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                config[key] = value
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.error(f"Failed to save config to {self.config_path}: {e}")

    def get_api_key(self) -> Optional[str]:
        """
        Get stored API key.

        Returns:
            API key string or None if not set
        """
        return self.data.get('api_key')

    def set_api_key(self, key: str) -> None:
        """
        Set API key and save to file.

        Args:
            key: API key string, sent as a bearer token with every request
        """
        self.data['api_key'] = key
        self.save()

    def get_target(self) -> str:
        """
        Get upload endpoint URL.

        Returns:
            Target URL (e.g., "http://localhost:3000/api/upload")
        """
        return self.data.get('target') or DEFAULT_TARGET

    def get_uploader_options(self) -> UploaderOptions:
        """
        Build engine options from the stored configuration.

        Returns:
            UploaderOptions with the configured target, chunking and retry settings

        Raises:
            pydantic.ValidationError: If a stored value is invalid
        """
        headers = {}
        api_key = self.get_api_key()
        if api_key:
            headers['Authorization'] = f"Bearer {api_key}"

        fields = {key: self.data[key] for key in self.DEFAULT_CONFIG if self.data.get(key) is not None}
        fields['target'] = self.get_target()
        return UploaderOptions(headers=headers, **fields)
