"""
Edge image server: GET /images/<path> with format negotiation and fallbacks.

EdgeImageServer.handle() holds the request logic and returns an
EdgeResponse; create_app() wraps it in a Bottle application.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from bottle import Bottle, HTTPResponse, request

from .edge_resolver import EdgeResolver, NegotiationHints
from .exceptions import NotFoundError, StoreTransientError
from .stored_object import IMMUTABLE_CACHE_CONTROL
from .variant_generator import get_content_type

VARY = 'Accept, Save-Data'
NOT_FOUND_CACHE_CONTROL = 'public, max-age=60'


@dataclass
class EdgeResponse:
    """Status, headers and body for one image request."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b''


def _etag_matches(if_none_match: Optional[str], etag: Optional[str]) -> bool:
    if not if_none_match or not etag:
        return False
    if if_none_match.strip() == '*':
        return True
    candidates = [tag.strip() for tag in if_none_match.split(',')]
    bare = etag[2:] if etag.startswith('W/') else etag
    return any(c == etag or c == bare or c == f"W/{bare}" for c in candidates)


class ResponseCache:
    """Thread-safe LRU of successful responses keyed by request-equivalence."""

    def __init__(self, max_entries: int = 512):
        self.max_entries = max_entries
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key) -> Optional[EdgeResponse]:
        with self._lock:
            response = self._entries.get(key)
            if response is not None:
                self._entries.move_to_end(key)
            return response

    def put(self, key, response: EdgeResponse) -> None:
        if self.max_entries <= 0:
            return
        with self._lock:
            self._entries[key] = response
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class EdgeImageServer:
    """
    Serves images from the store, never synthesizing one.

    Responses: 200 with the object, 304 when If-None-Match matches,
    404 (plain text) when the fallback chain is exhausted, 500 on store errors.
    """

    def __init__(
        self,
        resolver: EdgeResolver,
        cache: Optional[ResponseCache] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.resolver = resolver
        self.cache = cache if cache is not None else ResponseCache()
        self.logger = logger or logging.getLogger(__name__)

    def _success_headers(self, key: str, content_type: Optional[str], etag: Optional[str],
                         hints: NegotiationHints, fallback: bool) -> Dict[str, str]:
        headers = {
            'Content-Type': content_type or get_content_type(key),
            'Cache-Control': IMMUTABLE_CACHE_CONTROL,
            'Vary': VARY,
            'X-Content-Type-Options': 'nosniff',
            'Access-Control-Allow-Origin': '*',
        }
        if etag:
            headers['ETag'] = etag
        if fallback:
            headers['X-Fallback-Key'] = key
        if hints.save_data:
            headers['X-Save-Data'] = 'on'
        return headers

    @staticmethod
    def _not_modified(response_headers: Dict[str, str]) -> EdgeResponse:
        headers = {k: v for k, v in response_headers.items() if k != 'Content-Type'}
        return EdgeResponse(status=304, headers=headers)

    def handle(
        self,
        path: str,
        headers: Optional[Mapping] = None,
        query: Optional[Mapping] = None
    ) -> EdgeResponse:
        """
        Resolve and serve one image request.

        Args:
            path: Path below /images/
            headers: Request headers
            query: Query parameters (w, h, q, f)
        """
        headers = {str(k).lower(): v for k, v in (headers or {}).items()}
        hints = NegotiationHints.parse(headers, query)
        if_none_match = headers.get('if-none-match')
        cache_key = (path, hints.cache_key())

        cached = self.cache.get(cache_key)
        if cached is not None:
            if _etag_matches(if_none_match, cached.headers.get('ETag')):
                return self._not_modified(cached.headers)
            return cached

        try:
            resolution = self.resolver.resolve(path, hints)
            obj = resolution.object
            response_headers = self._success_headers(
                resolution.key, obj.content_type, obj.etag, hints, resolution.used_fallback
            )

            if _etag_matches(if_none_match, obj.etag):
                return self._not_modified(response_headers)

            full = self.resolver.store.get(resolution.key)
            if full is None or full.body is None:
                raise NotFoundError(path, resolution.tried)
        except NotFoundError:
            return EdgeResponse(
                status=404,
                headers={'Content-Type': 'text/plain; charset=utf-8', 'Cache-Control': NOT_FOUND_CACHE_CONTROL,
                         'Vary': VARY},
                body=b'Image not found',
            )
        except StoreTransientError as e:
            self.logger.error(f"Error fetching image {path}: {e}")
            return EdgeResponse(
                status=500,
                headers={'Content-Type': 'text/plain; charset=utf-8', 'Cache-Control': 'no-cache'},
                body=b'Error loading image',
            )

        if full.etag:
            response_headers['ETag'] = full.etag
        response_headers['Content-Length'] = str(len(full.body))
        response = EdgeResponse(status=200, headers=response_headers, body=full.body)
        self.cache.put(cache_key, response)
        return response


def create_app(server: EdgeImageServer) -> Bottle:
    """Bottle application exposing /images/<path> (and the /api/images/ alias)."""
    app = Bottle()

    def serve_image(path):
        result = server.handle(path, dict(request.headers), dict(request.query))
        return HTTPResponse(body=result.body, status=result.status, headers=result.headers)

    app.route('/images/<path:path>', method=['GET', 'HEAD'], callback=serve_image)
    app.route('/api/images/<path:path>', method=['GET', 'HEAD'], callback=serve_image)
    return app
