"""Light human-like page interaction run after navigation.

Random mouse travel, a few hovers, some wheel scrolling and an occasional
key press, separated by jittered pauses.  Every failure is ignored except
cancellation.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from playwright.async_api import Mouse, Page

logger = logging.getLogger(__name__)

_HOVER_SELECTOR = "a, img, button, div[role='button']"

_rng = random.Random()


async def _delay(min_ms: int, max_ms: int) -> None:
    await asyncio.sleep(_rng.randint(min_ms, max_ms) / 1000)


async def _move(mouse: Mouse, x0: float, y0: float, x1: float, y1: float, steps: int) -> None:
    dx = (x1 - x0) / steps
    dy = (y1 - y0) / steps
    for i in range(1, steps + 1):
        await mouse.move(x0 + dx * i, y0 + dy * i, steps=1)
        await _delay(15, 70)


async def _perform(page: Page) -> None:
    await _delay(600, 1400)

    viewport = page.viewport_size or {"width": 1280, "height": 900}
    vw, vh = viewport["width"], viewport["height"]

    x0 = _rng.randint(60, max(100, min(600, vw // 2)))
    y0 = _rng.randint(60, max(100, min(500, vh // 2)))
    x1 = _rng.randint(vw // 4, vw * 3 // 4)
    y1 = _rng.randint(vh // 4, vh * 3 // 4)
    await _move(page.mouse, x0, y0, x1, y1, _rng.randint(6, 15))

    nodes = await page.query_selector_all(_HOVER_SELECTOR)
    if nodes:
        for _ in range(_rng.randint(0, min(2, len(nodes) - 1))):
            node = _rng.choice(nodes)
            box = await node.bounding_box()
            if box is None:
                continue
            hx = box["x"] + box["width"] / 2
            hy = box["y"] + box["height"] / 2
            await _move(page.mouse, x1, y1, hx, hy, _rng.randint(6, 11))
            await node.hover()
            await _delay(500, 1400)
            x1, y1 = hx, hy

    if _rng.random() < 0.9:
        total = _rng.randint(150, 999)
        chunk = _rng.randint(80, 219)
        scrolled = 0
        while scrolled < total:
            delta = min(chunk, total - scrolled)
            await page.mouse.wheel(0, delta)
            scrolled += delta
            await _delay(180, 450)

    if _rng.random() < 0.35:
        await page.keyboard.press("PageDown" if _rng.random() < 0.5 else "ArrowDown")
        await _delay(200, 700)

    ex = _rng.randint(20, max(20, min(200, vw - 20)))
    ey = _rng.randint(20, max(20, min(200, vh - 20)))
    await _move(page.mouse, x1, y1, ex, ey, _rng.randint(8, 17))
    await _delay(700, 1600)


async def human_like_actions(page: Page) -> None:
    """Run the interaction sequence on ``page``, ignoring any failure."""
    try:
        await _perform(page)
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.debug("antibot: interaction failed on %s: %s", getattr(page, "url", None), exc)
