"""API variant detection from the ``X-Canvas-Meta`` response header."""

from __future__ import annotations

import json
import re
import threading
from dataclasses import dataclass
from typing import Any, Final

from structlog.stdlib import BoundLogger

from lmsapi.clients.client_exceptions import CancellationError, NetworkError
from lmsapi.core.context import RequestContext
from lmsapi.core.http.api_client import RequestExecutor
from lmsapi.core.logging import LogEvents, UnifiedLogger

__all__ = [
    "APIVariant",
    "FEATURE_MINIMUM_VERSIONS",
    "META_HEADER",
    "PROBE_PATH",
    "VersionProbe",
    "parse_version",
]

META_HEADER: Final[str] = "X-Canvas-Meta"
PROBE_PATH: Final[str] = "/api/v1/accounts"
DEFAULT_PRIMARY_COLLECTION: Final[str] = "accounts"

_VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)\.(\d+)")

FEATURE_MINIMUM_VERSIONS: Final[dict[str, tuple[int, int, int]]] = {
    "graphql": (2019, 0, 0),
    "new_quizzes": (2020, 0, 0),
    "outcomes": (2021, 0, 0),
    "rubrics_v2": (2022, 0, 0),
    "canvas_studio": (2023, 0, 0),
}


@dataclass(frozen=True, slots=True)
class APIVariant:
    """Backend version and root collection reported by the server."""

    major: int
    minor: int
    patch: int
    raw: str
    primary_collection: str = DEFAULT_PRIMARY_COLLECTION

    @classmethod
    def unknown(cls) -> APIVariant:
        """Variant assumed when detection fails: newest version, every feature on."""

        return cls(major=999, minor=999, patch=999, raw="unknown")

    @classmethod
    def dry_run(cls) -> APIVariant:
        return cls(major=999, minor=999, patch=999, raw="dry-run")

    @property
    def is_unknown(self) -> bool:
        return self.raw == "unknown"

    def is_at_least(self, major: int, minor: int = 0, patch: int = 0) -> bool:
        return (self.major, self.minor, self.patch) >= (major, minor, patch)

    def supports_feature(self, feature: str) -> bool:
        """Return ``False`` only for known features newer than this variant."""

        minimum = FEATURE_MINIMUM_VERSIONS.get(feature)
        if minimum is None:
            return True
        return self.is_at_least(*minimum)

    def __str__(self) -> str:
        return self.raw


def parse_version(value: str, *, primary_collection: str | None = None) -> APIVariant:
    """Parse the first ``major.minor.patch`` triple found in ``value``.

    Raises
    ------
    ValueError
        If ``value`` contains no version triple.
    """

    match = _VERSION_PATTERN.search(value or "")
    if match is None:
        msg = f"invalid version format: {value!r}"
        raise ValueError(msg)
    major, minor, patch = (int(part) for part in match.groups())
    return APIVariant(
        major=major,
        minor=minor,
        patch=patch,
        raw=value,
        primary_collection=primary_collection or DEFAULT_PRIMARY_COLLECTION,
    )


def _parse_meta(header: str | None) -> APIVariant | None:
    if not header:
        return None
    try:
        meta: Any = json.loads(header)
    except ValueError:
        return None
    if not isinstance(meta, dict):
        return None
    version = meta.get("version")
    if not isinstance(version, str):
        return None
    collection = meta.get("primaryCollection")
    try:
        return parse_version(
            version,
            primary_collection=collection if isinstance(collection, str) and collection else None,
        )
    except ValueError:
        return None


class VersionProbe:
    """Detect the API variant once and cache it for the owning client."""

    def __init__(self, executor: RequestExecutor, *, logger: BoundLogger | None = None) -> None:
        self._executor = executor
        self._log = logger or UnifiedLogger.get(__name__).bind(component="clients.version")
        self._lock = threading.Lock()
        self._variant: APIVariant | None = None

    @property
    def cached(self) -> APIVariant | None:
        with self._lock:
            return self._variant

    def detect(self, ctx: RequestContext | None = None) -> APIVariant:
        """Return the cached variant, probing the server on first use.

        Network failures, cancellation and an unparsable header all resolve
        to :meth:`APIVariant.unknown` rather than raising.
        """

        with self._lock:
            if self._variant is None:
                self._variant = self._probe(ctx)
            return self._variant

    def _probe(self, ctx: RequestContext | None) -> APIVariant:
        try:
            response = self._executor.send(
                "GET",
                PROBE_PATH,
                params={"per_page": 1},
                ctx=ctx,
                max_attempts=1,
                raise_for_status=False,
            )
        except (NetworkError, CancellationError) as exc:
            self._log.warning(
                LogEvents.CLIENT_VERSION_FALLBACK,
                reason=type(exc).__name__,
                error=str(exc),
            )
            return APIVariant.unknown()

        try:
            variant = _parse_meta(response.headers.get(META_HEADER))
            status_code = response.status_code
        finally:
            response.close()

        if variant is None:
            self._log.warning(
                LogEvents.CLIENT_VERSION_FALLBACK,
                reason="missing_or_invalid_meta",
                status_code=status_code,
            )
            return APIVariant.unknown()
        self._log.info(
            LogEvents.CLIENT_VERSION_DETECTED,
            version=variant.raw,
            primary_collection=variant.primary_collection,
            status_code=status_code,
        )
        return variant
