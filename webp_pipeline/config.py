"""Configuration of the offline converter.

Values are layered, lowest precedence first: defaults, YAML config file,
environment variables, command-line flags.

Environment variables:
    WEBP_SOURCE_DIR: Directory holding the source images
    WEBP_OUTPUT_DIR: Directory receiving the converted files
    WEBP_QUALITY: WebP quality (0-100)
    WEBP_LEDGER: Path to the SQLite conversion ledger
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Mapping, Optional

import yaml

DEFAULT_EXTENSIONS = (".jpg", ".jpeg", ".png")

# Logos and icons that must keep their original format.
DEFAULT_SKIP_FILES = (
    "favicon.ico",
    "favicon.svg",
    "robots.txt",
    "logo.png",
    "logo_transparent.png",
)

# Settings that an explicit null in the config file turns off.
NULLABLE_KEYS = ("ledger", "max_dimension")

ENV_VARS = {
    "WEBP_SOURCE_DIR": "source_dir",
    "WEBP_OUTPUT_DIR": "output_dir",
    "WEBP_QUALITY": "quality",
    "WEBP_LEDGER": "ledger",
}

SAMPLE_CONFIG = """# WebP converter configuration

# Where the source images live and where converted files are written
source_dir: public
output_dir: public/webp

# WebP quality (0-100) and compression method (0-6, 6 is smallest)
quality: 85
method: 6

# Extensions to convert (case-insensitive)
extensions: [.jpg, .jpeg, .png]

# Files that must keep their original format
skip_files:
  - favicon.ico
  - favicon.svg
  - robots.txt
  - logo.png
  - logo_transparent.png

# Scan subdirectories (default: false)
recursive: false

# Copy each .webp next to its source so name.ext -> name.webp resolves
mirror_to_source: true

# Optional: downscale anything larger than this many pixels
# max_dimension: 2560

# SQLite ledger recording measured sizes (null disables it)
ledger: data/conversions.db
"""


class ConfigError(Exception):
    """Raised for unreadable or invalid converter configuration."""
    pass


@dataclass(frozen=True)
class ConverterConfig:
    """Settings of one offline conversion run."""

    source_dir: Path = Path("public")
    output_dir: Path = Path("public/webp")
    quality: int = 85
    method: int = 6
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    skip_files: tuple[str, ...] = DEFAULT_SKIP_FILES
    recursive: bool = False
    mirror_to_source: bool = True
    max_dimension: Optional[int] = None
    ledger: Optional[Path] = Path("data/conversions.db")

    def __post_init__(self):
        if not 0 <= self.quality <= 100:
            raise ConfigError(f"quality must be between 0 and 100, got {self.quality}")
        if not 0 <= self.method <= 6:
            raise ConfigError(f"method must be between 0 and 6, got {self.method}")
        if self.max_dimension is not None and self.max_dimension <= 0:
            raise ConfigError(f"max_dimension must be positive, got {self.max_dimension}")

    @classmethod
    def from_mapping(cls, data: Mapping) -> "ConverterConfig":
        """Build a config from a plain mapping (e.g. parsed YAML).

        An explicit null disables the optional settings (``ledger``,
        ``max_dimension``).
        """
        return cls().merge(data, skip_none=False)

    def merge(self, data: Mapping, skip_none: bool = True) -> "ConverterConfig":
        """Return a copy with the given keys overridden.

        Args:
            data: Keys to override
            skip_none: Ignore None values (unset command-line flags). When
                False, None clears the optional settings and is ignored for
                the others.
        """
        known = {f.name for f in fields(self)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config key(s): {', '.join(sorted(unknown))}")

        changes = {}
        for key, value in data.items():
            if value is None:
                if not skip_none and key in NULLABLE_KEYS:
                    changes[key] = None
                continue
            changes[key] = _coerce(key, value)
        return replace(self, **changes)

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "ConverterConfig":
        """Apply the WEBP_* environment variables."""
        environ = os.environ if environ is None else environ
        overrides = {
            key: environ[var]
            for var, key in ENV_VARS.items()
            if environ.get(var)
        }
        return self.merge(overrides)


def _coerce(key: str, value):
    try:
        if key in ("source_dir", "output_dir", "ledger"):
            return Path(value)
        if key in ("quality", "method", "max_dimension"):
            return int(value)
        if key in ("recursive", "mirror_to_source"):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if key in ("extensions", "skip_files"):
            if isinstance(value, str):
                value = value.split(",")
            return tuple(str(v).strip() for v in value if str(v).strip())
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {value!r} ({e})")
    return value


def load_config(config_path: str | Path) -> ConverterConfig:
    """Load converter configuration from a YAML file.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}")

    if data is None:
        return ConverterConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_path}")

    return ConverterConfig.from_mapping(data)
