"""
Processing configuration and per-extension rule resolution.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

ORIGINAL = 'original'
DEFAULT_QUALITY = 85
DEFAULT_STORAGE_LIMIT = 10 * 1024 ** 3

Width = Union[int, str]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingRule:
    """
    How files with one extension are processed.

    Attributes:
        extension: Lower-case extension including the dot
        formats: Output formats, in order
        sizes: Target widths, or [ORIGINAL]
        skip: Produce no variants at all
        passthrough: Upload the source bytes without re-encoding
        placeholder: Eligible for an inline blur placeholder
    """
    extension: str
    formats: Tuple[str, ...] = ()
    sizes: Tuple[Width, ...] = ()
    skip: bool = False
    passthrough: bool = False
    placeholder: bool = False

    @property
    def variant_count(self) -> int:
        if self.skip:
            return 0
        if self.passthrough:
            return 1
        return len(self.formats) * len(self.sizes)


# Rules applied before per-extension overrides. The raster entries are
# completed with the configured sizes and formats by ProcessingConfig.
RASTER_EXTENSIONS = ('.jpg', '.jpeg', '.png')
BUILTIN_RULES = {
    '.gif': {'formats': ['webp'], 'sizes': [ORIGINAL]},
    '.svg': {'formats': ['svg'], 'sizes': [ORIGINAL], 'passthrough': True},
    '.pdf': {'formats': ['pdf'], 'sizes': [ORIGINAL], 'passthrough': True},
    '.webp': {'skip': True},
    '.avif': {'skip': True},
}

_KEY_ALIASES = {
    'skipUnchanged': 'skip_unchanged',
    'enablePlaceholders': 'enable_placeholders',
    'manifestPath': 'manifest_path',
    'storageLimit': 'storage_limit',
}


def _normalize_width(value) -> Width:
    if value == ORIGINAL:
        return ORIGINAL
    return int(value)


@dataclass
class ProcessingConfig:
    """
    Batch processing options.

    Attributes:
        sizes: Default target widths
        formats: Default output formats
        quality: Width -> quality (0-100)
        skip_unchanged: Skip sources whose hash matches the manifest
        enable_placeholders: Generate inline blur placeholders
        rules: Extension -> partial rule override
        sources: (directory, key prefix) pairs to walk
        manifest_path: Where the manifest JSON lives
        storage_limit: Bucket quota in bytes, for the storage status
        workers: Files processed concurrently
        on_progress: Called with (relative path, status) per file
        on_error: Called with (relative path, exception) per failure
    """
    sizes: List[int] = field(default_factory=lambda: [400, 800, 1200])
    formats: List[str] = field(default_factory=lambda: ['webp', 'avif'])
    quality: Dict[int, int] = field(default_factory=lambda: {400: 90, 800: 85, 1200: 80})
    skip_unchanged: bool = True
    enable_placeholders: bool = False
    rules: Dict[str, dict] = field(default_factory=dict)
    sources: List[Tuple[str, str]] = field(default_factory=lambda: [
        ('public/images', 'images'),
        ('public/documents', 'documents'),
    ])
    manifest_path: str = 'public/assets-manifest.json'
    storage_limit: int = DEFAULT_STORAGE_LIMIT
    workers: int = 4
    on_progress: Optional[Callable[[str, str], None]] = None
    on_error: Optional[Callable[[str, Exception], None]] = None

    def __post_init__(self):
        self.sizes = [int(s) for s in self.sizes]
        self.formats = [f.lower().lstrip('.') for f in self.formats]
        self.quality = {int(k): int(v) for k, v in self.quality.items()}
        self.rules = {self._normalize_extension(ext): dict(r) for ext, r in self.rules.items()}
        self.sources = [tuple(s) for s in self.sources]
        self._warned_quality = set()

        for width, value in self.quality.items():
            if not 0 <= value <= 100:
                raise ValueError(f"Quality for width {width} out of range: {value}")

    @staticmethod
    def _normalize_extension(extension: str) -> str:
        ext = extension.lower()
        return ext if ext.startswith('.') else f".{ext}"

    def quality_for(self, width: Width) -> int:
        """Quality for a target width, falling back to DEFAULT_QUALITY with a warning."""
        if width != ORIGINAL and width in self.quality:
            return self.quality[width]
        if width != ORIGINAL and width not in self._warned_quality:
            self._warned_quality.add(width)
            logger.warning(f"No quality configured for width {width}, using {DEFAULT_QUALITY}")
        return DEFAULT_QUALITY

    def resolve_rule(self, extension: str) -> Optional[ProcessingRule]:
        """
        Return the rule for an extension (case-insensitive), or None if unsupported.

        Per-extension overrides replace the matching fields of the built-in rule.
        """
        ext = self._normalize_extension(extension)

        if ext in RASTER_EXTENSIONS:
            base = {'formats': self.formats, 'sizes': self.sizes, 'placeholder': True}
        elif ext in BUILTIN_RULES:
            base = dict(BUILTIN_RULES[ext])
        elif ext in self.rules:
            base = {'formats': self.formats, 'sizes': self.sizes}
        else:
            return None

        merged = {**base, **self.rules.get(ext, {})}
        if 'outputs' in merged:
            merged['formats'] = merged.pop('outputs')

        if merged.get('skip'):
            return ProcessingRule(extension=ext, skip=True)

        return ProcessingRule(
            extension=ext,
            formats=tuple(f.lower().lstrip('.') for f in merged.get('formats', ())),
            sizes=tuple(_normalize_width(s) for s in merged.get('sizes', ())),
            passthrough=bool(merged.get('passthrough', False)),
            placeholder=bool(merged.get('placeholder', False)),
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'ProcessingConfig':
        """Create from a dictionary with camelCase or snake_case keys."""
        known = set(cls.__dataclass_fields__) - {'on_progress', 'on_error'}
        kwargs = {}
        for key, value in data.items():
            name = _KEY_ALIASES.get(key, key)
            if name not in known:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def load(cls, filepath: Optional[str]) -> 'ProcessingConfig':
        """Load from a JSON file; a missing file yields the defaults."""
        if not filepath or not Path(filepath).exists():
            if filepath:
                logger.info(f"No config at {filepath}, using defaults")
            return cls()
        with open(filepath, 'r') as f:
            return cls.from_dict(json.load(f))
