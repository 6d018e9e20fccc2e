"""
Legend and styling helpers for the SLaCC land cover and edge maps.
"""

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent.parent))
from config.land_cover_config import LAND_COVER_CLASSES, EDGE_CONFIG, get_urban_variant


def hex_color(color):
    """Normalize a palette entry to '#RRGGBB'."""
    color = color.strip()
    return color if color.startswith('#') else f'#{color}'


def build_legend(entries=None):
    """Ordered {name: '#color'} mapping for geemap's add_legend."""
    entries = LAND_COVER_CLASSES if entries is None else entries
    return {entry['name']: hex_color(entry['color']) for entry in entries}


def build_sld_style(entries=None):
    """
    Build a RasterSymbolizer SLD for the final land cover map.

    Each class becomes one interval ColorMapEntry whose quantity is the upper
    bound of its value range, so 1-22 renders as low density development,
    23-56 as mid density, and so on.
    """
    entries = LAND_COVER_CLASSES if entries is None else entries
    rows = []
    previous_high = None
    for entry in entries:
        low, high = entry['range']
        if low > high:
            raise ValueError(f"Invalid range for {entry['name']}: {entry['range']}")
        if previous_high is not None and low <= previous_high:
            raise ValueError(f"Overlapping range for {entry['name']}: {entry['range']}")
        previous_high = high
        rows.append(
            f'<ColorMapEntry color="{hex_color(entry["color"])}" '
            f'quantity="{high}" label="{entry["name"]}"/>'
        )

    return (
        '<RasterSymbolizer>'
        '<ColorMap type="intervals">'
        + ''.join(rows) +
        '</ColorMap>'
        '</RasterSymbolizer>'
    )


def class_for_value(value, entries=None):
    """Return the legend entry whose range contains ``value``, or None."""
    entries = LAND_COVER_CLASSES if entries is None else entries
    for entry in entries:
        low, high = entry['range']
        if low <= value <= high:
            return entry
    return None


def build_edge_legend(variant=None):
    """Legend for the edge map; urban labels follow the chosen variant."""
    urban_label = get_urban_variant(variant)['label']
    colors = EDGE_CONFIG['colors']
    urban_edge_label = urban_label.replace('Development', 'Edge')

    # Order matches the map's layer stack
    return {
        'Forest Cover': hex_color(colors['forest']),
        'Forest Edge': hex_color(colors['forest_edge']),
        urban_label: hex_color(colors['urban']),
        urban_edge_label: hex_color(colors['urban_edge']),
        'Forest--Urban Edge': hex_color(colors['forest_urban_edge']),
        'Agriculture': hex_color(colors['agriculture'])
    }
