"""
Interactive maps for the SLaCC outputs, rendered with geemap.
"""

import geemap
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).parent.parent.parent))
from config.land_cover_config import GEE_CONFIG, VIS_CONFIG, EDGE_CONFIG, get_urban_variant
from legend import build_legend, build_sld_style, build_edge_legend


def _base_map():
    center = GEE_CONFIG['map_center']
    m = geemap.Map()
    m.setCenter(center['lon'], center['lat'], center['zoom'])
    return m


def create_classification_map(composite, final_map, output_html=None):
    """Map with the true colour composite, the styled land classification and its legend."""
    m = _base_map()

    m.addLayer(composite, VIS_CONFIG['composite'], VIS_CONFIG['composite_name'], False)
    m.addLayer(final_map.sldStyle(build_sld_style()), {}, VIS_CONFIG['classification_name'])
    m.add_legend(
        title=VIS_CONFIG['legend_title'],
        legend_dict=build_legend(),
        position=VIS_CONFIG['legend_position']
    )

    if output_html:
        _save(m, output_html)
    return m


def create_edge_map(analysis, output_html=None):
    """Map with land cover, distance, focal max and forest--urban edge layers."""
    colors = EDGE_CONFIG['colors']
    urban_layer_name = get_urban_variant(analysis['variant'])['layer_name']
    m = _base_map()

    m.addLayer(analysis['masked_agriculture'], {'palette': colors['agriculture']}, 'Agriculture')
    m.addLayer(analysis['masked_forest'], {'palette': colors['forest']}, 'Forest Cover', True, 0.8)
    m.addLayer(analysis['masked_urban'], {'palette': colors['urban']}, urban_layer_name, True, 0.7)

    # Distance layers are only useful for inspection
    m.addLayer(analysis['forest_distance'], {}, 'Distance to Forest', False)
    m.addLayer(analysis['urban_distance'], {}, 'Distance to Urban', False)

    m.addLayer(analysis['forest_edge'], {'palette': colors['forest_edge']}, 'forest focalmax')
    m.addLayer(analysis['urban_edge'], {'palette': colors['urban_edge']}, 'urban focalmax')
    m.addLayer(analysis['forest_urban_edge'], {'palette': colors['forest_urban_edge']}, 'forestUrbanEdge')

    m.add_legend(
        title=EDGE_CONFIG['legend_title'],
        legend_dict=build_edge_legend(analysis['variant']),
        position=VIS_CONFIG['legend_position']
    )

    if output_html:
        _save(m, output_html)
    return m


def _save(m, output_html):
    output_html = Path(output_html)
    output_html.parent.mkdir(parents=True, exist_ok=True)
    m.to_html(str(output_html))
    print(f"🗺️  Map saved: {output_html}")
