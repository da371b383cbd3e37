"""
Application configuration loaded from config.ini.

Example config.ini:

    [Storage]
    DataPath = C:\\OrderTracker

    [Vision]
    ApiKey =
    Model = gemini-2.5-flash
    TimeoutSeconds = 30

    [Timers]
    OverdueCheckSeconds = 60
    ElapsedTickSeconds = 1

    [Orders]
    OverdueHours = 24

    [Logging]
    LogLevel = INFO

Every value has a fallback, so a missing file or section is not an error.
The vision key falls back to the GEMINI_API_KEY and API_KEY environment
variables when config.ini leaves it empty.
"""
import os
import configparser
from pathlib import Path
from typing import Optional

from logger import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


class AppConfig:
    """
    Typed view over config.ini.

    Attributes:
        config (configparser.ConfigParser): Raw parsed configuration
        data_path (Path): Base directory for the JSON stores and logs
        vision_api_key (Optional[str]): Gemini API key, None when not configured
        vision_model (str): Model name used for extraction
        vision_endpoint (str): Base URL of the generative language REST API
        vision_timeout (int): HTTP timeout in seconds
        overdue_check_seconds (int): Polling interval of the overdue check
        elapsed_tick_seconds (int): Polling interval of the live elapsed time
        overdue_hours (int): Age after which a not-started order is overdue
    """

    def __init__(self, config_path: str = "config.ini"):
        self.config = self._load_config(config_path)

        self.data_path = Path(
            self.config.get('Storage', 'DataPath', fallback=str(Path.home() / ".order_tracker"))
        )

        self.vision_api_key = self._resolve_api_key()
        self.vision_model = self.config.get('Vision', 'Model', fallback=DEFAULT_MODEL)
        self.vision_endpoint = self.config.get('Vision', 'Endpoint', fallback=DEFAULT_ENDPOINT)
        self.vision_timeout = self.config.getint('Vision', 'TimeoutSeconds', fallback=30)

        self.overdue_check_seconds = self.config.getint('Timers', 'OverdueCheckSeconds', fallback=60)
        self.elapsed_tick_seconds = self.config.getint('Timers', 'ElapsedTickSeconds', fallback=1)

        self.overdue_hours = self.config.getint('Orders', 'OverdueHours', fallback=24)

        logger.debug(
            f"Config: data_path={self.data_path}, model={self.vision_model}, "
            f"api_key={'set' if self.vision_api_key else 'missing'}"
        )

    @staticmethod
    def _load_config(config_path: str) -> configparser.ConfigParser:
        """Load configuration from config.ini."""
        config = configparser.ConfigParser()

        if not Path(config_path).exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return config

        try:
            config.read(config_path, encoding='utf-8')
            logger.info(f"Configuration loaded from {config_path}")
        except configparser.Error as e:
            logger.error(f"Failed to load config: {e}")

        return config

    def _resolve_api_key(self) -> Optional[str]:
        key = self.config.get('Vision', 'ApiKey', fallback='').strip()
        if key:
            return key

        for var in API_KEY_ENV_VARS:
            value = os.environ.get(var, '').strip()
            # Build tools sometimes inject the literal string "undefined"
            if value and value != 'undefined':
                return value

        return None

    @property
    def orders_store_path(self) -> Path:
        return self.data_path / "Orders"
