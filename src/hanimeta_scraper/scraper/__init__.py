"""Network access layer used by the providers.

Sub-modules:
- ``config``             : constants and tuning parameters
- ``network``            : ``NetworkClient`` contract
- ``http_client``        : httpx-based client with transient-error retries
- ``playwright_client``  : browser-backed client borrowing managed sessions
- ``challenge``          : anti-bot interstitial detection
- ``antibot``            : human-like page interactions
"""
