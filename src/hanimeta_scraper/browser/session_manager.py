"""Browser context pooling and rotation.

A browser context carries cookies, storage and a fingerprint.  Reusing one
keeps challenge clearance cookies warm; keeping it too long makes it easy
to profile.  :class:`BrowserSessionManager` hands out the current context
for a traffic class (search or detail) and replaces it when it died, was
challenged, outlived its TTL or opened too many pages.

Isolation modes:

``shared``
    One context serves both search and detail traffic.
``split``
    Search and detail each get their own context, rotated independently so
    a challenge on a detail page does not throw away a healthy search
    context.

Each traffic class has its own :class:`asyncio.Lock`; rotation of one class
never blocks the other.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Protocol

from playwright.async_api import Error as PlaywrightError

from hanimeta_scraper.api.metrics import session_rotations_total
from hanimeta_scraper.core.exceptions import SessionError
from hanimeta_scraper.scraper.challenge import dom_has_challenge_hint, url_has_challenge_hint
from hanimeta_scraper.scraper.config import CHALLENGE_DOM_HINTS, CHALLENGE_URL_HINTS

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext

    from hanimeta_scraper.config.settings import Settings

logger = logging.getLogger(__name__)


class IsolationMode(str, Enum):
    SHARED = "shared"
    SPLIT = "split"


class BrowserProvider(Protocol):
    """Anything that can hand out the running browser (normally :class:`BrowserEngine`)."""

    async def get_browser(self) -> Browser: ...


@dataclass(frozen=True)
class BrowserFingerprint:
    """Identity applied uniformly to every new context."""

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    )
    viewport_width: int = 1280
    viewport_height: int = 900
    locale: str = "zh-CN"
    timezone_id: str = "Australia/Melbourne"
    accept_language: str = "zh-CN,zh;q=0.9"

    def context_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``Browser.new_context``."""
        return {
            "user_agent": self.user_agent,
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "locale": self.locale,
            "timezone_id": self.timezone_id,
            "extra_http_headers": {"Accept-Language": self.accept_language},
        }

    def http_headers(self) -> dict[str, str]:
        """Headers that make plain HTTP side requests match the browser."""
        return {"User-Agent": self.user_agent, "Accept-Language": self.accept_language}


@dataclass
class SessionOptions:
    """Rotation policy, isolation mode and fingerprint of the session manager.

    ``ttl_minutes`` or ``max_pages`` of ``0`` disable that predicate.
    """

    isolation: IsolationMode = IsolationMode.SHARED
    ttl_minutes: float = 8.0
    max_pages: int = 50
    rotate_on_challenge: bool = True
    fingerprint: BrowserFingerprint = field(default_factory=BrowserFingerprint)
    init_script_path: str | None = None
    init_script: str | None = None
    challenge_url_hints: tuple[str, ...] = CHALLENGE_URL_HINTS
    challenge_dom_hints: tuple[str, ...] = CHALLENGE_DOM_HINTS

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionOptions:
        return cls(
            isolation=IsolationMode(settings.session_isolation),
            ttl_minutes=settings.session_ttl_minutes,
            max_pages=settings.session_max_pages,
            rotate_on_challenge=settings.session_rotate_on_challenge,
            fingerprint=BrowserFingerprint(
                user_agent=settings.browser_user_agent,
                viewport_width=settings.browser_viewport_width,
                viewport_height=settings.browser_viewport_height,
                locale=settings.browser_locale,
                timezone_id=settings.browser_timezone,
                accept_language=settings.browser_accept_language,
            ),
            init_script_path=settings.browser_init_script_path,
        )


@dataclass
class _SessionHolder:
    traffic: str
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    context: BrowserContext | None = None
    born_at: float = 0.0
    pages_opened: int = 0
    challenged: bool = False
    rotations: int = 0


class BrowserSessionManager:
    """Hands out browser contexts per traffic class and rotates them.

    Args:
        engine: Source of the running browser.
        options: Rotation and fingerprint policy.
        clock: Monotonic time source.  Injected by tests.
    """

    def __init__(
        self,
        engine: BrowserProvider,
        options: SessionOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self.options = options or SessionOptions()
        self._clock = clock
        self._closed = False
        self._init_script_loaded = False
        self._init_script: str | None = self.options.init_script
        self._rotation_reasons: Counter[str] = Counter()

        if self.options.isolation is IsolationMode.SHARED:
            shared = _SessionHolder("shared")
            self._search = shared
            self._detail = shared
        else:
            self._search = _SessionHolder("search")
            self._detail = _SessionHolder("detail")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def acquire(self, for_detail: bool) -> BrowserContext:
        """Return a usable context for the traffic class, rotating it if due.

        Raises:
            SessionError: If the manager is closed or no context could be created.
        """
        holder = self._holder(for_detail)
        async with holder.lock:
            if self._closed:
                raise SessionError("session manager is closed")
            reason = self._rotation_reason(holder)
            if reason is None:
                assert holder.context is not None
                return holder.context

            await self._safe_close(holder.context)
            holder.context = None
            holder.context = await self._new_context()
            holder.born_at = self._clock()
            holder.pages_opened = 0
            holder.challenged = False
            holder.rotations += 1

            self._rotation_reasons[reason] += 1
            session_rotations_total.labels(traffic=holder.traffic, reason=reason).inc()
            logger.info("browser: %s context (re)created (reason=%s)", holder.traffic, reason)
            return holder.context

    def record_page_opened(self, context: BrowserContext, for_detail: bool) -> None:
        """Count a page against the class's held context if it is ``context``.

        Pages opened on a context that has since been rotated out, or that
        belongs to the other traffic class, are ignored.
        """
        holder = self._holder(for_detail)
        if holder.context is not None and holder.context is context:
            holder.pages_opened += 1
            return
        logger.debug("browser: ignoring page count for stale %s context", holder.traffic)

    def flag_challenge(self, for_detail: bool) -> None:
        """Mark the current context of the class as challenged."""
        holder = self._holder(for_detail)
        holder.challenged = True
        logger.info("browser: challenge flagged on %s context", holder.traffic)

    def is_challenge(self, url: str | None, html: str | None) -> bool:
        """Match a loaded page against the configured URL and DOM hint sets."""
        return url_has_challenge_hint(url, self.options.challenge_url_hints) or dom_has_challenge_hint(
            html, self.options.challenge_dom_hints
        )

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        sessions = []
        for holder in self._holders():
            sessions.append(
                {
                    "traffic": holder.traffic,
                    "alive": self._is_alive(holder.context),
                    "ageSeconds": round(now - holder.born_at, 1) if holder.context else None,
                    "pagesOpened": holder.pages_opened,
                    "challenged": holder.challenged,
                    "rotations": holder.rotations,
                }
            )
        return {
            "isolation": self.options.isolation.value,
            "sessions": sessions,
            "rotationReasons": dict(self._rotation_reasons),
        }

    async def aclose(self) -> None:
        """Close every held context.  Never raises."""
        self._closed = True
        for holder in self._holders():
            async with holder.lock:
                await self._safe_close(holder.context)
                holder.context = None
        logger.info("browser: session manager closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _holder(self, for_detail: bool) -> _SessionHolder:
        return self._detail if for_detail else self._search

    def _holders(self) -> list[_SessionHolder]:
        if self._search is self._detail:
            return [self._search]
        return [self._search, self._detail]

    @staticmethod
    def _is_alive(context: BrowserContext | None) -> bool:
        if context is None:
            return False
        browser = context.browser
        return browser is not None and browser.is_connected()

    def _rotation_reason(self, holder: _SessionHolder) -> str | None:
        if holder.context is None:
            return "initial"
        if not self._is_alive(holder.context):
            return "dead"
        opts = self.options
        if holder.challenged and opts.rotate_on_challenge:
            return "challenge"
        if opts.ttl_minutes > 0 and self._clock() - holder.born_at > opts.ttl_minutes * 60:
            return "ttl"
        if opts.max_pages > 0 and holder.pages_opened >= opts.max_pages:
            return "max_pages"
        return None

    async def _new_context(self) -> BrowserContext:
        browser = await self._engine.get_browser()
        try:
            context = await browser.new_context(**self.options.fingerprint.context_kwargs())
        except PlaywrightError as exc:
            raise SessionError(f"failed to create browser context: {exc}") from exc

        # Not yet owned by a holder: close it here if setup is interrupted.
        try:
            script = await self._load_init_script()
            if script:
                try:
                    await context.add_init_script(script=script)
                except PlaywrightError as exc:
                    logger.warning("browser: init script injection failed, continuing without it: %s", exc)
        except BaseException:
            await self._safe_close(context)
            raise
        return context

    async def _load_init_script(self) -> str | None:
        if self._init_script_loaded:
            return self._init_script
        path = self.options.init_script_path
        if self._init_script is None and path:
            try:
                self._init_script = await asyncio.to_thread(Path(path).read_text, "utf-8")
            except OSError as exc:
                logger.warning("browser: cannot read init script %s: %s", path, exc)
        self._init_script_loaded = True
        return self._init_script

    @staticmethod
    async def _safe_close(context: BrowserContext | None) -> None:
        if context is None:
            return
        try:
            await context.close()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.debug("browser: ignoring error while closing context: %s", exc)
