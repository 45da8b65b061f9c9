"""WebP image pipeline - rewrite, lazy-load and fall back image sources.

Package structure:
    webp_pipeline/
    ├── cli.py              # Offline converter command-line interface
    ├── config.py           # Converter configuration (YAML + environment)
    ├── core/               # Runtime logic
    │   ├── naming.py       # name.ext -> name.webp convention
    │   ├── capability.py   # WebP support probe
    │   ├── lazy.py         # Viewport-driven lazy loading
    │   ├── fallback.py     # WebP -> original -> placeholder ladder
    │   ├── batch.py        # Batch path rewriting
    │   └── pipeline.py     # Application-owned composition
    ├── storage/            # State
    │   ├── cache.py        # Memoized rewrites
    │   └── ledger.py       # SQLite record of conversions
    ├── api/                # Collaborators
    │   ├── loader.py       # HTTP / local / mock image loaders
    │   └── schemas.py      # Pydantic UI contract
    └── converter/          # Build-time conversion
        ├── scanner.py      # Eligible source selection
        ├── encoder.py      # Pillow WebP encoding
        └── converter.py    # Batch conversion and reports
"""

from .core.naming import to_webp_path
from .core.pipeline import ImagePipeline
from .core.lazy import LazyImage, ManualVisibilityTracker
from .core.fallback import FallbackLadder
from .core.batch import BatchOptimizer
from .storage.cache import ConversionCache
from .storage.ledger import ConversionLedger
from .api.loader import HttpImageLoader, ImageLoadError, LocalImageLoader, MockImageLoader
from .api.schemas import DisplayRequest, DisplayState
from .config import ConfigError, ConverterConfig, load_config
from .converter.converter import WebPConverter

__all__ = [
    # Core
    "to_webp_path",
    "ImagePipeline",
    "LazyImage",
    "ManualVisibilityTracker",
    "FallbackLadder",
    "BatchOptimizer",
    # Storage
    "ConversionCache",
    "ConversionLedger",
    # API
    "HttpImageLoader",
    "ImageLoadError",
    "LocalImageLoader",
    "MockImageLoader",
    "DisplayRequest",
    "DisplayState",
    # Converter
    "ConfigError",
    "ConverterConfig",
    "load_config",
    "WebPConverter",
]
