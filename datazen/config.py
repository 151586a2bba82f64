# datazen/config.py
import os
import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple
from dataclasses import dataclass, fields, replace

logger = logging.getLogger(__name__)


@dataclass
class PathConfig:
    """Configuration for project paths"""
    PROJECT_ROOT: Path
    OUTPUT_DIR: Path
    LOGS_DIR: Path


@dataclass
class DataValidationConfig:
    """Limits applied when a file is ingested"""
    MAX_FILE_SIZE_MB: int
    MIN_DATA_ROWS: int
    SUPPORTED_FILE_FORMATS: List[str]


@dataclass(frozen=True)
class CleaningKeywords:
    """Token tables consulted by the value normalizer and the type coercer.

    Passed by reference into the cleaning components so that a locale-specific
    set can be substituted without touching the components.
    """
    SENTINEL_TOKENS: Tuple[str, ...] = (
        'n/a', 'na', 'unknown', 'null', 'none', '-', '--', '?', 'missing'
    )
    PRICE_KEYWORDS: Tuple[str, ...] = (
        'price', 'cost', 'amount', 'value', 'fee', 'charge', 'rate',
        'salary', 'wage', 'revenue', 'income'
    )
    QUANTITY_KEYWORDS: Tuple[str, ...] = (
        'quantity', 'count', 'number', 'qty', 'amount', 'total', 'sum',
        'volume', 'size', 'length', 'width', 'height'
    )
    DATE_KEYWORDS: Tuple[str, ...] = (
        'date', 'time', 'created', 'updated', 'modified', 'timestamp',
        'year', 'month', 'day'
    )


DEFAULT_KEYWORDS = CleaningKeywords()


@dataclass
class ExportConfig:
    """Configuration for exported files (DEFAULT_FORMAT None means no export)"""
    DEFAULT_FORMAT: Optional[str]
    REPORT_PREFIX: str
    MAX_REPORT_ITEMS: int
    SUPPORTED_EXPORT_FORMATS: List[str]


@dataclass
class APIConfig:
    """Configuration for the HTTP API"""
    HOST: str
    PORT: int
    ENABLE_CORS: bool
    ENABLE_DOCS: bool


class Config:
    """Central configuration manager for DataZen"""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration

        Args:
            config_file: Optional path to JSON config file to override defaults
        """
        self._load_default_config()

        if config_file and os.path.exists(config_file):
            self._load_config_file(config_file)

        self._load_environment_variables()

    def _load_default_config(self):
        """Load default configuration values"""

        # Output and log directories are relative to the working directory
        self.paths = PathConfig(
            PROJECT_ROOT=Path(__file__).parent.parent,
            OUTPUT_DIR=Path("exports"),
            LOGS_DIR=Path("logs")
        )

        self.data_validation = DataValidationConfig(
            MAX_FILE_SIZE_MB=500,
            MIN_DATA_ROWS=1,
            SUPPORTED_FILE_FORMATS=['.csv', '.xlsx', '.xls']
        )

        self.cleaning = DEFAULT_KEYWORDS

        self.export = ExportConfig(
            DEFAULT_FORMAT=None,
            REPORT_PREFIX='DataZen',
            MAX_REPORT_ITEMS=10,
            SUPPORTED_EXPORT_FORMATS=['csv', 'xlsx', 'json']
        )

        self.api = APIConfig(
            HOST="0.0.0.0",
            PORT=8000,
            ENABLE_CORS=True,
            ENABLE_DOCS=True
        )

        self.logging_level = "INFO"
        self.debug_mode = False

    def _load_config_file(self, config_file: str):
        """Load configuration from JSON file"""
        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load config file {config_file}: {e}")
            return

        for section, values in config_data.items():
            if not hasattr(self, section):
                continue

            if not isinstance(values, dict):
                setattr(self, section, values)
                continue

            config_obj = getattr(self, section)
            if isinstance(config_obj, CleaningKeywords):
                # Frozen: build a new table from the overridden keyword lists
                overrides = {
                    key: tuple(value) for key, value in values.items()
                    if key in {f.name for f in fields(CleaningKeywords)}
                }
                self.cleaning = replace(config_obj, **overrides)
                continue

            for key, value in values.items():
                if hasattr(config_obj, key):
                    if isinstance(getattr(config_obj, key), Path):
                        value = Path(value)
                    setattr(config_obj, key, value)

    def _load_environment_variables(self):
        """Load configuration from environment variables"""

        if os.getenv("OUTPUT_DIR"):
            self.paths.OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR"))

        if os.getenv("LOGS_DIR"):
            self.paths.LOGS_DIR = Path(os.getenv("LOGS_DIR"))

        if os.getenv("MAX_FILE_SIZE_MB"):
            self.data_validation.MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB"))

        if os.getenv("EXPORT_FORMAT"):
            self.export.DEFAULT_FORMAT = os.getenv("EXPORT_FORMAT").lower()

        if os.getenv("API_HOST"):
            self.api.HOST = os.getenv("API_HOST")

        if os.getenv("API_PORT"):
            self.api.PORT = int(os.getenv("API_PORT"))

        if os.getenv("LOG_LEVEL"):
            self.logging_level = os.getenv("LOG_LEVEL")

        if os.getenv("DEBUG_MODE"):
            self.debug_mode = os.getenv("DEBUG_MODE").lower() == 'true'

    def save_config(self, config_file: str):
        """Save current configuration to JSON file"""
        config_dict: Dict[str, Any] = {}

        for section in ['paths', 'data_validation', 'cleaning', 'export', 'api']:
            config_obj = getattr(self, section)
            config_dict[section] = {}
            for f in fields(config_obj):
                value = getattr(config_obj, f.name)
                if isinstance(value, Path):
                    value = str(value)
                elif isinstance(value, tuple):
                    value = list(value)
                config_dict[section][f.name] = value

        config_dict['logging_level'] = self.logging_level
        config_dict['debug_mode'] = self.debug_mode

        with open(config_file, 'w') as f:
            json.dump(config_dict, f, indent=2)

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []

        if self.data_validation.MAX_FILE_SIZE_MB <= 0:
            issues.append(f"Invalid max file size: {self.data_validation.MAX_FILE_SIZE_MB}")

        if self.data_validation.MIN_DATA_ROWS < 1:
            issues.append(f"Invalid min data rows: {self.data_validation.MIN_DATA_ROWS}")

        if (self.export.DEFAULT_FORMAT is not None
                and self.export.DEFAULT_FORMAT not in self.export.SUPPORTED_EXPORT_FORMATS):
            issues.append(f"Unsupported default export format: {self.export.DEFAULT_FORMAT}")

        if self.export.MAX_REPORT_ITEMS <= 0:
            issues.append(f"Invalid max report items: {self.export.MAX_REPORT_ITEMS}")

        if not 0 < self.api.PORT < 65536:
            issues.append(f"Invalid API port: {self.api.PORT}")

        if self.logging_level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            issues.append(f"Invalid logging level: {self.logging_level}")

        return issues

    def __str__(self) -> str:
        """String representation of configuration"""
        return f"Config(project_root={self.paths.PROJECT_ROOT}, debug={self.debug_mode})"


# Global configuration instance
_config = None


def get_config(config_file: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton pattern)"""
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config


def reload_config(config_file: Optional[str] = None) -> Config:
    """Reload configuration (useful for testing)"""
    global _config
    _config = Config(config_file)
    return _config
