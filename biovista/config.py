"""
Configuration Module for BioVista
=================================
Central configuration management and the exception taxonomy for the core.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Tuple
from pathlib import Path
import json
from datetime import datetime


# Custom Exception Classes
class BioVistaError(Exception):
    """Base exception for BioVista"""
    pass


class DataLoadingError(BioVistaError):
    """Exception raised for data loading errors"""
    pass


class ParseError(DataLoadingError):
    """Raised when the input cannot be interpreted as tabular data at all"""
    pass


class UnresolvedVariableError(BioVistaError, KeyError):
    """Raised by the resolver in strict mode when a label matches no series"""

    def __init__(self, label: str):
        super().__init__(f"Variable {label!r} not found in data structure")
        self.label = label

    def __str__(self):
        return self.args[0]


class ConfigurationError(BioVistaError):
    """Exception raised for configuration errors"""
    pass


class FieldTypeWarning(UserWarning):
    """A cell whose value did not have the type expected for its column.

    Never raised by the loader; instances are collected on the dataset and
    logged so the row stays in place.
    """

    def __init__(self, column: str, row: int, value: Any, expected: str):
        super().__init__(
            f"Invalid {column} in row {row}: expected {expected}, got {value!r}"
        )
        self.column = column
        self.row = row
        self.value = value
        self.expected = expected


@dataclass
class IngestionConfig:
    """Spreadsheet ingestion settings"""
    default_file_type: str = "xlsx"
    sheet_index: int = 0
    boolean_true_values: List[str] = field(default_factory=lambda: ["yes"])
    required_columns: List[str] = field(
        default_factory=lambda: ["Sample Code", "Latitude", "Longitude"]
    )


@dataclass
class ResolverConfig:
    """Variable resolver settings"""
    # Raise UnresolvedVariableError instead of returning an empty series
    strict: bool = False


@dataclass
class StatisticsConfig:
    """Statistics engine settings"""
    iqr_multiplier: float = 1.5
    min_outlier_samples: int = 4
    top_relationships: int = 6


@dataclass
class DetectionConfig:
    """Column auto-detection settings"""
    confidence_step: float = 0.2
    pattern_file: Optional[Path] = None  # None -> bundled patterns.json
    coordinate_keys: List[str] = field(
        default_factory=lambda: ["latitude", "longitude", "lat", "long", "lon"]
    )
    min_detected_variables: int = 2


@dataclass
class LoggingConfig:
    """Logging settings"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Path = Path("biovista_results/logs")
    max_file_size_mb: int = 10
    backup_count: int = 5

    # Console output
    console_output: bool = True
    file_output: bool = False
    structured_logs: bool = False


_SECTIONS = ("ingestion", "resolver", "statistics", "detection", "logging")
_PATH_FIELDS = {("detection", "pattern_file"), ("logging", "file_path")}


class Config:
    """Main configuration class for BioVista"""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration"""
        self.config_path = Path(config_path) if config_path else None

        self.ingestion = IngestionConfig()
        self.resolver = ResolverConfig()
        self.statistics = StatisticsConfig()
        self.detection = DetectionConfig()
        self.logging = LoggingConfig()

        # Metadata
        self.version = "1.0.0"
        self.created_at = datetime.now()

        # Load custom config if given
        if self.config_path is not None:
            self.load_config()

    def validate(self):
        """Check value ranges; raise ConfigurationError on the first problem"""
        if self.statistics.iqr_multiplier < 0:
            raise ConfigurationError(
                f"iqr_multiplier must be non-negative, got {self.statistics.iqr_multiplier}"
            )
        if self.statistics.min_outlier_samples < 1:
            raise ConfigurationError("min_outlier_samples must be at least 1")
        if self.statistics.top_relationships < 1:
            raise ConfigurationError("top_relationships must be at least 1")
        if not 0 < self.detection.confidence_step <= 1:
            raise ConfigurationError(
                f"confidence_step must be in (0, 1], got {self.detection.confidence_step}"
            )
        if self.ingestion.default_file_type not in ("xlsx", "xls", "csv"):
            raise ConfigurationError(
                f"Unsupported default_file_type: {self.ingestion.default_file_type}"
            )
        if self.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Unknown logging level: {self.logging.level}")
        if self.logging.max_file_size_mb < 1:
            raise ConfigurationError("max_file_size_mb must be at least 1")
        if self.logging.backup_count < 0:
            raise ConfigurationError("backup_count must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        result: Dict[str, Any] = {}
        for section in _SECTIONS:
            values = getattr(self, section).__dict__
            result[section] = {
                k: str(v) if isinstance(v, Path) else v for k, v in values.items()
            }
        result["version"] = self.version
        result["created_at"] = self.created_at.isoformat()
        return result

    def save_config(self, path: Optional[Path] = None):
        """Save configuration to JSON file"""
        save_path = Path(path) if path else self.config_path
        if save_path is None:
            raise ConfigurationError("No path given to save configuration")

        with open(save_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=4)

    def load_config(self, path: Optional[Path] = None):
        """Load configuration from JSON file"""
        load_path = Path(path) if path else self.config_path

        if load_path is None or not load_path.exists():
            raise ConfigurationError(f"Config file not found: {load_path}")

        try:
            with open(load_path, 'r') as f:
                config_dict = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid config file {load_path}: {e}")

        for section in _SECTIONS:
            target = getattr(self, section)
            for key, value in config_dict.get(section, {}).items():
                if not hasattr(target, key):
                    raise ConfigurationError(f"Unknown setting: {section}.{key}")
                if (section, key) in _PATH_FIELDS and value is not None:
                    value = Path(value)
                setattr(target, key, value)

        self.validate()

    def get_summary(self) -> str:
        """Get configuration summary"""
        return f"""
    BioVista Configuration Summary
    ==============================
    Version: {self.version}

    Ingestion:
    - Default File Type: {self.ingestion.default_file_type}
    - Required Columns: {', '.join(self.ingestion.required_columns)}

    Statistics:
    - IQR Multiplier: {self.statistics.iqr_multiplier}
    - Top Relationships: {self.statistics.top_relationships}

    Detection:
    - Confidence Step: {self.detection.confidence_step}
    - Pattern File: {self.detection.pattern_file or 'bundled'}

    Resolver Strict Mode: {self.resolver.strict}

    Logging:
    - Level: {self.logging.level}
    - Log Directory: {self.logging.file_path}
    - File Output: {self.logging.file_output}
    """


def coordinate_key_set(config: Config) -> Tuple[str, ...]:
    return tuple(k.lower() for k in config.detection.coordinate_keys)
