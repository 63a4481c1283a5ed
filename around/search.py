import math
import logging
from typing import List, Optional
from .filters import is_filtered
from .metrics import SEARCH_FILTERED_TOTAL, SEARCH_TOTAL
from .schemas.posts import Post

logger = logging.getLogger(__name__)

DEFAULT_RANGE_KM = 200.0

def parse_float_or_zero(raw: Optional[str], name: str) -> float:
    # Unparsable coordinates search around 0 rather than failing the request
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = math.nan
    if not math.isfinite(value):
        logger.warning(f"Unparsable {name} {raw!r}, using 0")
        return 0.0
    return value

def parse_range(raw: Optional[str]) -> float:
    if raw is None or raw == '':
        return DEFAULT_RANGE_KM
    try:
        value = float(raw)
    except ValueError:
        value = math.nan
    if not math.isfinite(value) or value <= 0:
        logger.warning(f"Invalid range {raw!r}, using {DEFAULT_RANGE_KM}km")
        return DEFAULT_RANGE_KM
    return value

class QueryOrchestrator:
    """Runs a geo distance query and drops posts caught by the content filter"""

    def __init__(self, index):
        self.index = index

    async def search(self, lat: Optional[str], lon: Optional[str], range_km: Optional[str] = None) -> List[Post]:
        lat_value = parse_float_or_zero(lat, 'lat')
        lon_value = parse_float_or_zero(lon, 'lon')
        radius = parse_range(range_km)
        logger.info(f"Search received: {lat_value} {lon_value} {radius}km")

        posts = await self.index.query_by_distance(lat_value, lon_value, radius)
        SEARCH_TOTAL.inc()

        kept = []
        for post in posts:
            if is_filtered(post.message):
                SEARCH_FILTERED_TOTAL.inc()
                continue
            kept.append(post)
        return kept
