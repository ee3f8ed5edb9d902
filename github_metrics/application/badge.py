import aiohttp
import asyncio
import logging
import re
from typing import List, Sequence, Tuple
from urllib.parse import quote

from github_metrics.domain.exceptions import BadgeFetchError
from github_metrics.domain.models import MetricsSnapshot

logger = logging.getLogger(__name__)

DEFAULT_BADGE_BASE_URL = "https://img.shields.io/badge"
DEFAULT_TIMEOUT_SECONDS = 10.0

DEFAULT_BADGE_WIDTH = 80
BADGE_HEIGHT = 20
# Horizontal advance between two fragments
BADGE_SPACING = 2
# Per-fragment allowance used only for the outer canvas width
CANVAS_PADDING = 4

WIDTH_PATTERN = re.compile(r'width="([0-9]+(?:\.[0-9]+)?)"')
SVG_WRAPPER_PATTERN = re.compile(r'<svg[^>]*>|</svg>')

SVG_MEDIA_TYPE = "image/svg+xml"


def escape_badge_text(value: str) -> str:
    """Escapes a label or value for the shields.io {label}-{message}-{color} path grammar."""
    escaped = value.replace("-", "--").replace("_", "__").replace(" ", "_")
    return quote(escaped, safe="")


def extract_width(fragment: str) -> int:
    """Returns the first width="N" declared in the fragment, or 80 when there is none."""
    match = WIDTH_PATTERN.search(fragment)
    if not match:
        return DEFAULT_BADGE_WIDTH
    try:
        return int(float(match.group(1)))
    except ValueError:
        return DEFAULT_BADGE_WIDTH


def strip_svg_wrapper(fragment: str) -> str:
    return SVG_WRAPPER_PATTERN.sub("", fragment)


def layout(widths: Sequence[int]) -> Tuple[List[int], int]:
    """
    Computes the x-offset of each fragment and the width of the outer canvas.

    Offsets advance by width + BADGE_SPACING while the canvas sums width + CANVAS_PADDING,
    so the canvas is always a little wider than the placed fragments.
    """
    offsets = []
    x = 0
    for width in widths:
        offsets.append(x)
        x += width + BADGE_SPACING
    total_width = sum(width + CANVAS_PADDING for width in widths)
    return offsets, total_width


def compose_svg(fragments: Sequence[str]) -> str:
    """Lays the fragments out left to right inside a single SVG document."""
    widths = [extract_width(fragment) for fragment in fragments]
    offsets, total_width = layout(widths)

    groups = "".join(
        f'<g transform="translate({x},0)">{strip_svg_wrapper(fragment)}</g>'
        for x, fragment in zip(offsets, fragments)
    )
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" '
        f'width="{total_width}" height="{BADGE_HEIGHT}">{groups}</svg>'
    )


class BadgeCompositor:
    """
    Renders the metrics of a user as one horizontal strip of four shields.io badges:
    language, stars, forks and repositories.
    """

    def __init__(self, badge_base_url: str = DEFAULT_BADGE_BASE_URL, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.badge_base_url = badge_base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def badge_url(self, label: str, value, color: str) -> str:
        return f"{self.badge_base_url}/{escape_badge_text(label)}-{escape_badge_text(str(value))}-{color}"

    def badge_urls(self, metrics: MetricsSnapshot) -> List[str]:
        return [
            self.badge_url("Language", metrics.most_used_language, "blue"),
            self.badge_url("Stars", metrics.total_stars, "yellow"),
            self.badge_url("Forks", metrics.total_forks, "green"),
            self.badge_url("Repos", metrics.total_repos, "orange"),
        ]

    async def fetch_fragment(self, session: aiohttp.ClientSession, url: str) -> str:
        try:
            async with session.get(url, timeout=self.timeout) as response:
                if response.status >= 400:
                    raise BadgeFetchError(f"Badge provider answered {response.status} for {url}")
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise BadgeFetchError(f"Failed to fetch badge {url}: {e}") from e

    async def compose(self, session: aiohttp.ClientSession, metrics: MetricsSnapshot) -> str:
        """
        Fetches the four fragments concurrently and composites them.

        Raises:
            BadgeFetchError: If any single fragment cannot be fetched.
        """
        urls = self.badge_urls(metrics)
        # gather keeps results in argument order regardless of completion order
        fragments = await asyncio.gather(*(self.fetch_fragment(session, url) for url in urls))
        logger.debug(f"Fetched {len(fragments)} badge fragments.")
        return compose_svg(fragments)
