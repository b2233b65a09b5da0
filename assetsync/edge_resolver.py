"""
EdgeResolver - Picks the best stored variant for an image request.

Request flow:
    1. Parse negotiation hints (Accept, Save-Data, DPR, Viewport-Width, ?w=, ?f=)
    2. Upgrade un-suffixed raster originals (hero.jpg) to the most efficient
       supported format at a hinted width (hero-800.avif)
    3. Walk a bounded fallback chain with HEAD lookups, first hit wins:
         same width, next-preferred format
         next smaller width, same format
         next smaller width, next-preferred format
         ...
         un-sized modern formats (hero.avif, hero.webp)
         the path as requested
         original upload: .jpg, .jpeg, .png
    4. Nothing found -> NotFoundError
"""

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Tuple

from .exceptions import NotFoundError, StoreTransientError
from .stored_object import StoredObject

# Most space-efficient first.
FORMAT_PREFERENCE = ('avif', 'webp', 'jpeg', 'png')
ORIGINAL_EXTENSIONS = ('jpg', 'jpeg', 'png')
DEFAULT_WIDTH = 800

KEY_PATTERN = re.compile(r'^(?P<base>.+?)(?:-(?P<width>\d+))?\.(?P<ext>[A-Za-z0-9]+)$')


def _lower_keys(mapping: Optional[Mapping]) -> dict:
    if not mapping:
        return {}
    return {str(k).lower(): v for k, v in mapping.items()}


def _parse_float(value, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_int(value) -> Optional[int]:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class NegotiationHints:
    """
    Client capabilities and preferences for one request.

    Attributes:
        supported_formats: Modern formats the client accepts, most efficient first
        save_data: Client sent Save-Data: on
        dpr: Device pixel ratio
        viewport_width: CSS viewport width, if sent
        width: Explicit ?w= request
        format: Explicit ?f= request
    """
    supported_formats: Tuple[str, ...] = ()
    save_data: bool = False
    dpr: float = 1.0
    viewport_width: Optional[int] = None
    width: Optional[int] = None
    format: Optional[str] = None

    @classmethod
    def parse(cls, headers: Optional[Mapping] = None, query: Optional[Mapping] = None) -> 'NegotiationHints':
        """Build hints from request headers and query parameters."""
        headers = _lower_keys(headers)
        query = _lower_keys(query)

        accept = headers.get('accept', '').lower()
        supported = tuple(
            fmt for fmt in FORMAT_PREFERENCE
            if fmt in ('avif', 'webp') and f"image/{fmt}" in accept
        )

        requested_format = (query.get('f') or '').lower() or None
        if requested_format == 'auto':
            requested_format = None

        return cls(
            supported_formats=supported,
            save_data=headers.get('save-data', '').strip().lower() == 'on',
            dpr=_parse_float(headers.get('sec-ch-dpr') or headers.get('dpr'), 1.0),
            viewport_width=_parse_int(headers.get('sec-ch-viewport-width') or headers.get('viewport-width')),
            width=_parse_int(query.get('w')),
            format=requested_format,
        )

    def cache_key(self) -> tuple:
        """The parts of the hints that can change which object is served."""
        return (self.supported_formats, self.save_data, self.dpr, self.viewport_width, self.width, self.format)


@dataclass(frozen=True)
class KeyParts:
    """A store key split into base, optional width suffix and extension."""
    base: str
    width: Optional[int]
    ext: str

    def key(self, width: Optional[int] = None, ext: Optional[str] = None) -> str:
        ext = ext or self.ext
        if width is None:
            return f"{self.base}.{ext}"
        return f"{self.base}-{width}.{ext}"


@dataclass
class Resolution:
    """
    The object chosen for a request.

    Attributes:
        requested_key: Ideal key after negotiation
        key: Key actually found
        object: Metadata of the found object (no body)
        tried: Keys looked up, in order
    """
    requested_key: str
    key: str
    object: StoredObject
    tried: List[str] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return self.key != self.requested_key


class EdgeResolver:
    """
    Resolves image requests against a read-only object store.

    Stateless per request; each resolution performs at most
    (len(sizes) + 1) * len(formats) + len(ORIGINAL_EXTENSIONS) + 1 lookups.
    """

    def __init__(
        self,
        store,
        sizes: Iterable[int] = (400, 800, 1200),
        formats: Iterable[str] = ('webp', 'avif'),
        default_width: int = DEFAULT_WIDTH,
        key_prefix: str = 'images',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize resolver.

        Args:
            store: Object store with head() and get()
            sizes: Widths the processor generates
            formats: Formats the processor generates
            default_width: Width used when the request carries no width hint
            key_prefix: Store prefix the request path is mapped under
            logger: Optional logger instance
        """
        self.store = store
        self.sizes = sorted(set(int(s) for s in sizes))
        self.formats = self._order_formats(formats)
        self.default_width = default_width
        self.key_prefix = key_prefix.strip('/')
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _order_formats(formats: Iterable[str]) -> List[str]:
        unique = list(dict.fromkeys(f.lower() for f in formats))
        rank = {fmt: i for i, fmt in enumerate(FORMAT_PREFERENCE)}
        return sorted(unique, key=lambda f: rank.get(f, len(rank)))

    def request_key(self, path: str) -> str:
        """Map a request path ('hero.jpg' or 'images/hero.jpg') to a store key."""
        path = posixpath.normpath(path.lstrip('/'))
        if path.startswith('..') or path in ('.', ''):
            raise NotFoundError(path)
        if self.key_prefix and not path.startswith(f"{self.key_prefix}/"):
            return f"{self.key_prefix}/{path}"
        return path

    def parse_key(self, key: str) -> Optional[KeyParts]:
        """
        Split a key into base, width and extension.

        A numeric suffix only counts as a width when it is a configured size,
        so 'team-2024.jpg' keeps '-2024' in its base.
        """
        match = KEY_PATTERN.match(key)
        if not match:
            return None
        base = match.group('base')
        width = match.group('width')
        if width is not None and int(width) not in self.sizes:
            base = f"{base}-{width}"
            width = None
        return KeyParts(
            base=base,
            width=int(width) if width else None,
            ext=match.group('ext').lower(),
        )

    def choose_width(self, hints: NegotiationHints) -> int:
        """
        Width for an un-suffixed request.

        Save-Data picks the smallest width. Otherwise ?w=, then
        Viewport-Width x DPR, pick the smallest width that covers them;
        with no hint the default width is used.
        """
        if not self.sizes:
            return self.default_width
        if hints.save_data:
            return self.sizes[0]

        target = hints.width
        if target is None and hints.viewport_width:
            target = int(hints.viewport_width * hints.dpr)
        if target is None:
            if self.default_width in self.sizes:
                return self.default_width
            return self.sizes[len(self.sizes) // 2]

        for size in self.sizes:
            if size >= target:
                return size
        return self.sizes[-1]

    def choose_format(self, hints: NegotiationHints) -> Optional[str]:
        """Most efficient configured format the client can use, or None."""
        if hints.format in self.formats:
            return hints.format
        for fmt in self.formats:
            if fmt in hints.supported_formats:
                return fmt
        return None

    def ideal_key(self, key: str, hints: NegotiationHints) -> str:
        """Apply format upgrade and Save-Data downgrade to a store key."""
        parts = self.parse_key(key)
        if parts is None:
            return key

        if parts.width is None and parts.ext in ORIGINAL_EXTENSIONS:
            fmt = self.choose_format(hints)
            if fmt is None:
                return key
            return parts.key(self.choose_width(hints), fmt)

        if hints.save_data and parts.width is not None:
            smaller = [s for s in self.sizes if s < parts.width]
            if smaller:
                return parts.key(smaller[-1])
        return key

    def fallback_chain(
        self,
        key: str,
        hints: NegotiationHints,
        original_ext: Optional[str] = None,
        request_key: Optional[str] = None
    ) -> List[str]:
        """
        Ordered keys to try for a request, starting with key itself.

        Within each width the requested format is tried before the
        less-preferred formats the client supports; widths step down from
        the requested one. Then come the un-sized variants the client can
        decode (animated GIFs are stored as anim.webp), the path as it was
        requested (passthrough files such as logo.svg), and the original
        uploads.
        """
        parts = self.parse_key(key)
        if parts is None:
            return [key] if request_key in (None, key) else [key, request_key]

        formats = [parts.ext]
        if parts.ext in self.formats:
            start = self.formats.index(parts.ext)
            formats += [f for f in self.formats[start + 1:] if f in hints.supported_formats]

        if parts.width is not None:
            widths = [parts.width] + [s for s in reversed(self.sizes) if s < parts.width]
        else:
            widths = [None]

        chain = [parts.key(w, f) for w in widths for f in formats]
        chain += [parts.key(None, f) for f in self.formats if f in hints.supported_formats]
        if request_key:
            chain.append(request_key)

        originals = list(ORIGINAL_EXTENSIONS)
        if original_ext in originals:
            originals.remove(original_ext)
            originals.insert(0, original_ext)
        chain += [parts.key(None, ext) for ext in originals]

        return list(dict.fromkeys(chain))

    def resolve(self, path: str, hints: Optional[NegotiationHints] = None) -> Resolution:
        """
        Find the best stored object for a request path.

        Raises:
            NotFoundError: Nothing in the fallback chain exists
            StoreTransientError: Every lookup failed with a store error
        """
        hints = hints or NegotiationHints()
        key = self.request_key(path)
        requested = self.ideal_key(key, hints)

        parts = self.parse_key(key)
        original_ext = parts.ext if parts and parts.ext in ORIGINAL_EXTENSIONS else None
        chain = self.fallback_chain(requested, hints, original_ext, request_key=key)

        tried = []
        failures = 0
        for candidate in chain:
            tried.append(candidate)
            try:
                obj = self.store.head(candidate)
            except StoreTransientError as e:
                failures += 1
                self.logger.warning(f"Lookup failed for {candidate}: {e}")
                continue
            if obj is not None:
                if candidate != requested:
                    self.logger.info(f"Fallback used: {requested} -> {candidate}")
                return Resolution(requested_key=requested, key=candidate, object=obj, tried=tried)

        if failures and failures == len(tried):
            raise StoreTransientError(f"All lookups failed for {path}")

        self.logger.debug(f"Not found: {path} (tried {len(tried)} keys)")
        raise NotFoundError(path, tried)
