"""
Edge classification for the SLaCC land cover map.

Finds where forest cover (coniferous, mixed, deciduous) meets urban
development. Three urban definitions are supported:

- ``all``: every impervious class (1-100)
- ``mid_high``: mid and high density development (23-100)
- ``low``: low density development (1-22)

Percent edge is the forest--urban edge pixel count divided by the sum of
forest, urban and agriculture pixels.
"""

import ee
from pathlib import Path
import sys
from typing import Dict, Optional

sys.path.append(str(Path(__file__).parent.parent.parent))
from config.land_cover_config import EDGE_CONFIG, DEBUG_CONFIG, get_urban_variant


def in_range(image: ee.Image, value_range) -> ee.Image:
    """Boolean image of pixels inside an inclusive value range."""
    low, high = value_range
    if low == high:
        return image.eq(low)
    return image.gte(low).And(image.lte(high))


def land_cover_layers(final_map: ee.Image, variant: str = None) -> Dict[str, ee.Image]:
    """Agriculture, forest and urban cover plus their self-masked versions."""
    urban_range = get_urban_variant(variant)['range']

    agriculture = final_map.eq(EDGE_CONFIG['agriculture_value'])
    forest = in_range(final_map, EDGE_CONFIG['forest_range'])
    urban = in_range(final_map, urban_range)

    return {
        'agriculture': agriculture,
        'masked_agriculture': agriculture.updateMask(agriculture),
        'forest': forest,
        'masked_forest': forest.updateMask(forest),
        'urban': urban,
        'masked_urban': urban.updateMask(urban)
    }


def distance_to(cover: ee.Image, masked_cover: ee.Image, radius: float = None) -> ee.Image:
    """Distance from cover pixels to the nearest non-cover pixel, limited to the cover."""
    radius = radius or EDGE_CONFIG['distance_radius_m']
    kernel = ee.Kernel.euclidean(radius=radius, units='meters')
    return (cover.Not().distance(kernel)
            .unmask(0)
            .updateMask(masked_cover.mask()))


def focal_edge(distance: ee.Image, radius: float = None) -> ee.Image:
    """Grow the edge pixels (distance > 0) with a focal max and mask the rest."""
    radius = radius or EDGE_CONFIG['focal_radius_m']
    return (distance.gt(0)
            .focal_max(radius=radius, kernelType=EDGE_CONFIG['focal_kernel'], units='meters')
            .unmask()
            .selfMask())


def forest_urban_edge(forest_edge: ee.Image, urban_edge: ee.Image) -> ee.Image:
    """Pixels where the forest edge and the urban edge overlap."""
    return forest_edge.gte(0).And(urban_edge.gte(0))


def run_edge_analysis(final_map: ee.Image, variant: str = None) -> Dict:
    """Build every edge layer for one urban variant."""
    variant = variant or EDGE_CONFIG['default_variant']
    print(f"🌲 Building forest--urban edges ({get_urban_variant(variant)['label']})")

    analysis = land_cover_layers(final_map, variant)
    analysis['variant'] = variant
    analysis['forest_distance'] = distance_to(analysis['forest'], analysis['masked_forest'])
    analysis['urban_distance'] = distance_to(analysis['urban'], analysis['masked_urban'])
    analysis['forest_edge'] = focal_edge(analysis['forest_distance'])
    analysis['urban_edge'] = focal_edge(analysis['urban_distance'])
    analysis['forest_urban_edge'] = forest_urban_edge(analysis['forest_edge'], analysis['urban_edge'])

    return analysis


def _pixel_sum(image: ee.Image, region: ee.Geometry) -> ee.Number:
    # Single-band images, so the first value is the band sum
    return ee.Number(image.reduceRegion(
        reducer=ee.Reducer.sum(),
        geometry=region,
        scale=EDGE_CONFIG['count_scale'],
        maxPixels=EDGE_CONFIG['count_max_pixels']
    ).values().get(0))


def edge_pixel_counts(analysis: Dict, region: ee.Geometry) -> Dict[str, float]:
    """Pixel counts used to calculate percent edge, fetched in one round trip."""
    counts = ee.Dictionary({
        'forest': _pixel_sum(analysis['masked_forest'], region),
        'urban': _pixel_sum(analysis['masked_urban'], region),
        'agriculture': _pixel_sum(analysis['masked_agriculture'], region),
        'forest_edge': _pixel_sum(analysis['forest_distance'].gt(0), region),
        'urban_edge': _pixel_sum(analysis['urban_distance'].gt(0), region),
        'forest_urban_edge': _pixel_sum(analysis['forest_urban_edge'], region)
    }).getInfo()
    counts = {name: value or 0 for name, value in counts.items()}

    if DEBUG_CONFIG['verbose_logging']:
        print(f"   total forest pixels: {counts['forest']:.0f}")
        print(f"   total urban pixels: {counts['urban']:.0f}")
        print(f"   total agriculture pixels: {counts['agriculture']:.0f}")
        print(f"   forest edge pixels: {counts['forest_edge']:.0f}")
        print(f"   urban edge pixels: {counts['urban_edge']:.0f}")
        print(f"   total edge pixels: {counts['forest_urban_edge']:.0f}")

    return counts


def percent_edge(counts: Dict[str, float]) -> Optional[float]:
    """Forest--urban edge as a percentage of forest, urban and agriculture pixels."""
    total = counts['forest'] + counts['urban'] + counts['agriculture']
    if total <= 0:
        return None
    return counts['forest_urban_edge'] / total * 100
