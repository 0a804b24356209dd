"""Browser engine handle and session lifecycle management."""

from hanimeta_scraper.browser.engine import BrowserEngine
from hanimeta_scraper.browser.session_manager import (
    BrowserFingerprint,
    BrowserSessionManager,
    IsolationMode,
    SessionOptions,
)

__all__ = [
    "BrowserEngine",
    "BrowserFingerprint",
    "BrowserSessionManager",
    "IsolationMode",
    "SessionOptions",
]
