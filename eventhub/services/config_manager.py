import os
from pathlib import Path
from string import Template
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from eventhub.models.config import EventHubConfig
from eventhub.observability.logging import get_logger
from eventhub.utils.exceptions import ConfigValidationError

logger = get_logger("config_manager")

DEFAULT_CONFIG_PATH = "config/eventhub.yaml"


class ConfigManager:
    """Loads and validates the EventHub configuration"""

    def __init__(
        self,
        config_path: str = DEFAULT_CONFIG_PATH,
        load_env: bool = True,
    ):
        self.config_path = Path(config_path)
        self.env_loaded = not load_env
        self._config: Optional[EventHubConfig] = None

    def load_config(self) -> EventHubConfig:
        """Load and validate configuration.

        A missing config file is not an error: every setting has a
        default, and MEDIA_CACHE_SIZE_MB still applies.
        """
        if self._config:
            return self._config

        # 1. Load environment
        if not self.env_loaded:
            load_dotenv()
            self.env_loaded = True

        # 2. Check file existence
        if not self.config_path.exists():
            logger.info("config_defaults_used", path=str(self.config_path))
            self._config = EventHubConfig()
            return self._config

        # 3. Read YAML
        try:
            with open(self.config_path) as f:
                raw_content = f.read()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        # 4. Substitute env vars
        try:
            template = Template(raw_content)
            substituted_content = template.safe_substitute(os.environ)
            config_data = yaml.safe_load(substituted_content) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(
                f"Failed to parse YAML or substitute variables: {e}"
            )

        if not isinstance(config_data, dict):
            raise ConfigValidationError(
                f"Config root must be a mapping, got {type(config_data).__name__}"
            )

        # 5. Validate with Pydantic
        try:
            self._config = EventHubConfig(**config_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            cache_size_mb=self._config.media_cache.max_cache_size_mb,
            history_size=self._config.jobs.history_size,
        )
        return self._config
