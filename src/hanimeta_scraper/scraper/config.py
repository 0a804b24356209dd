"""Constants and tuning parameters for the network access layer."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Plain HTTP
# ---------------------------------------------------------------------------

#: Default HTTP request timeout in seconds.
DEFAULT_HTTP_TIMEOUT: float = 30.0

#: User agent sent by the plain HTTP client.  A desktop browser string:
#: both sources serve degraded markup (or a challenge) to obvious bots.
HTTP_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36"
)

HTTP_ACCEPT: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

HTTP_ACCEPT_LANGUAGE: str = "en-US,en;q=0.9,ja;q=0.8,zh-CN;q=0.7"

#: Initial backoff before retrying a transient transport failure.
HTTP_RETRY_INITIAL_DELAY: float = 0.5

#: Upper bound on a single backoff sleep.
HTTP_RETRY_MAX_DELAY: float = 8.0

# ---------------------------------------------------------------------------
# Browser pages
# ---------------------------------------------------------------------------

#: Navigation timeout for the first attempt (milliseconds).
PRIMARY_GOTO_TIMEOUT_MS: int = 60_000

#: Navigation timeout for the single slow retry (milliseconds).
SLOW_GOTO_TIMEOUT_MS: int = 90_000

#: Ready-selector wait on the first attempt (milliseconds).
READY_SELECTOR_TIMEOUT_MS: int = 10_000

#: Ready-selector wait on the slow retry (milliseconds).
SLOW_READY_SELECTOR_TIMEOUT_MS: int = 15_000

#: Selectors that must appear before a page counts as loaded.
DEFAULT_READY_SELECTORS: tuple[str, ...] = ("body",)

#: URL fragment that marks detail-page traffic (Hanime watch pages).
DETAIL_URL_MARKER: str = "/watch"

#: Chromium flags for containerised, automation-quiet operation.
BROWSER_LAUNCH_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)

# ---------------------------------------------------------------------------
# Challenge detection
# ---------------------------------------------------------------------------

#: Substrings of a final page URL that indicate an interstitial.
CHALLENGE_URL_HINTS: tuple[str, ...] = ("challenge", "cf-challenge", "cloudflare", "/cdn-cgi/")

#: Substrings of page HTML that indicate an interstitial.
CHALLENGE_DOM_HINTS: tuple[str, ...] = (
    "cf-challenge",
    "#challenge-form",
    "Just a moment",
    "Verifying you are human",
)

#: Markup that only ever appears on challenge pages.
DEFINITIVE_CHALLENGE_SIGNATURES: tuple[str, ...] = (
    "<title>Just a moment...</title>",
    "<title>Attention Required! | Cloudflare</title>",
    'id="challenge-form"',
    'class="cf-challenge-form"',
    "/cdn-cgi/challenge-platform/h/",
    "window._cf_chl_opt",
    "cf_chl_prog",
    '<div id="cf-wrapper">',
    '<div class="cf-browser-verification cf-im-under-attack">',
)

#: Body phrases shown while a challenge runs.
CHALLENGE_PHRASES: tuple[str, ...] = (
    "Checking your browser",
    "Verifying you are human",
    "Please enable cookies",
)

#: Pages longer than this are never judged by the weak heuristic.
SUSPICIOUS_PAGE_MAX_CHARS: int = 5000

#: Body text shorter than this is "nearly empty" for the weak heuristic.
SUSPICIOUS_BODY_MAX_CHARS: int = 500
