"""
Default obstruction-feature source: the Overpass API.

The analyzer only needs a callable ``(bbox, when) -> list[ObstructionFeature]``;
this module provides one backed by OpenStreetMap.
"""

import requests
from loguru import logger

from . import config
from .features import features_from_overpass, summarize_features
from .models import FeatureFetchError

# (element type, filter) pairs queried inside the bbox
QUERY_FILTERS = [
    ('way', '["building"]'),
    ('relation', '["building"]'),
    ('node', '["natural"="tree"]'),
    ('way', '["natural"="tree_row"]'),
    ('way', '["leisure"="park"]'),
    ('way', '["leisure"="garden"]'),
    ('relation', '["leisure"="park"]'),
    ('way', '["landuse"="forest"]'),
    ('way', '["natural"="wood"]'),
    ('relation', '["landuse"="forest"]'),
    ('relation', '["natural"="wood"]'),
    ('way', '["covered"="yes"]["highway"]'),
]


def build_query(bbox, timeout=None):
    """Overpass QL for every shade-producing feature inside ``bbox``."""
    timeout = config.OVERPASS_TIMEOUT if timeout is None else timeout
    area = bbox.as_overpass()
    body = "\n".join(f"  {kind}{flt}({area});" for kind, flt in QUERY_FILTERS)
    return f"""
[out:json][timeout:{timeout}];
(
{body}
);
out body;
>;
out skel qt;
"""


def fetch_obstruction_features(bbox, when, url=None, timeout=None):
    """
    Fetch and parse obstruction features for ``bbox``.

    Raises
    ------
    FeatureFetchError
        On transport errors, HTTP errors or a non-JSON body.
    """
    url = url or config.OVERPASS_URL
    timeout = config.OVERPASS_TIMEOUT if timeout is None else timeout
    query = build_query(bbox, timeout)

    try:
        response = requests.post(
            url,
            data={'data': query},
            headers={'User-Agent': config.USER_AGENT},
            timeout=timeout + 15,
        )
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as e:
        raise FeatureFetchError(f"Overpass request failed: {e}") from e

    features = features_from_overpass(payload, when)
    logger.info(f"Overpass returned {len(payload.get('elements', []))} elements, "
                f"{len(features)} shade features {summarize_features(features)}")
    return features
