"""
Land Cover Classification Configuration for Cumberland County, Maine
Defines land cover classes, imagery sources and processing parameters for SLaCC.
"""

import os

# Land cover classes on the final map. Values 1-100 come from NLCD percent
# impervious surface, 101-105 from the supervised CART classification.
LAND_COVER_CLASSES = [
    {
        'name': 'Low Density Development',
        'color': 'CCADE0',  # Lavender
        'range': (1, 22)
    },
    {
        'name': 'Mid Density Development',
        'color': 'A052D3',  # Purple
        'range': (23, 56)
    },
    {
        'name': 'High Density Development',
        'color': '633581',  # Dark purple
        'range': (57, 100)
    },
    {
        'name': 'Coniferous',
        'color': '18620f',  # Dark green
        'range': (101, 101)
    },
    {
        'name': 'Mixed',
        'color': '3B953B',  # Green
        'range': (102, 102)
    },
    {
        'name': 'Deciduous',
        'color': '89CD89',  # Light green
        'range': (103, 103)
    },
    {
        'name': 'Agriculture',
        'color': 'EFE028',  # Yellow
        'range': (104, 104)
    },
    {
        'name': 'Water',
        'color': '0b4a8b',  # Blue
        'range': (105, 105)
    }
]

# Training point sets, merged in this order before sampling
TRAINING_CLASSES = {
    'coniferous': {
        'landcover': 101,
        'asset_id': 'users/slacc/SLaCC_trainingdata/coniferous',
        'local_file': 'data/training/coniferous.shp'
    },
    'mixed': {
        'landcover': 102,
        'asset_id': 'users/slacc/SLaCC_trainingdata/mixed',
        'local_file': 'data/training/mixed.shp'
    },
    'deciduous': {
        'landcover': 103,
        'asset_id': 'users/slacc/SLaCC_trainingdata/deciduous',
        'local_file': 'data/training/deciduous.shp'
    },
    'agriculture': {
        'landcover': 104,
        'asset_id': 'users/slacc/SLaCC_trainingdata/agriculture',
        'local_file': 'data/training/agriculture.shp'
    },
    'water': {
        'landcover': 105,
        'asset_id': 'users/slacc/SLaCC_trainingdata/water',
        'local_file': 'data/training/water.shp'
    }
}

# Landsat 8 sensor profiles. Optical bands are renamed to B1..B7 so the
# rest of the pipeline does not depend on the collection version.
SENSOR_PROFILES = {
    'landsat8_c01_sr': {
        'collection_id': 'LANDSAT/LC08/C01/T1_SR',
        'qa_band': 'pixel_qa',
        'cloud_shadow_bit': 3,
        'cloud_bit': 5,
        'optical_bands': ['B1', 'B2', 'B3', 'B4', 'B5', 'B6', 'B7'],
        'scale_factor': 0.0001,
        'offset': 0.0,
        'description': 'Landsat 8 Collection 1 Tier 1 Surface Reflectance'
    },
    'landsat8_c02_l2': {
        'collection_id': 'LANDSAT/LC08/C02/T1_L2',
        'qa_band': 'QA_PIXEL',
        'cloud_shadow_bit': 4,
        'cloud_bit': 3,
        'optical_bands': ['SR_B1', 'SR_B2', 'SR_B3', 'SR_B4', 'SR_B5', 'SR_B6', 'SR_B7'],
        'scale_factor': 0.0000275,
        'offset': -0.2,
        'description': 'Landsat 8 Collection 2 Tier 1 Level 2'
    }
}

# Google Earth Engine configuration
GEE_CONFIG = {
    'project_id': os.environ.get('EE_PROJECT', 'your-gee-project-id'),
    'region': {
        'asset_id': None,  # Set to a county boundary asset to skip the TIGER lookup
        'counties_collection': 'TIGER/2018/Counties',
        'state_fips': '23',  # Maine
        'county_name': 'Cumberland'
    },
    'sensor': 'landsat8_c02_l2',
    'date_range': {
        'start': '2018-07-12',
        'end': '2018-07-30'
    },
    'impervious': {
        'collection_id': 'USGS/NLCD_RELEASES/2016_REL',
        'band': 'impervious',
        'start': '2016-01-01',
        'end': '2017-01-01'
    },
    'map_center': {
        'lon': -70.3322,
        'lat': 43.8398,
        'zoom': 10
    }
}

# Classifier configuration (CART)
CLASSIFIER_CONFIG = {
    'cart': {
        'max_nodes': 300,
        'min_leaf_population': 5
    },
    'bands': ['B3', 'B4', 'B5', 'B6', 'B7'],
    'class_property': 'landcover',
    'output_band': 'landcover',
    'sample_scale': 30,
    'training_split': 0.8,  # Roughly 80% training, 20% testing
    'train_on': 'points',  # 'points' (every sample) or 'training' (split only)
    'random_seed': 0
}

# Visualization parameters
VIS_CONFIG = {
    'composite': {'bands': ['B4', 'B3', 'B2'], 'min': 0, 'max': 0.3},
    'composite_name': 'Cumberland Color Image',
    'classification_name': 'Land Classification',
    'legend_title': 'Classification Legend',
    'legend_position': 'bottomleft'
}

# Edge classification configuration
EDGE_CONFIG = {
    'forest_range': (101, 103),
    'agriculture_value': 104,
    'urban_variants': {
        'all': {
            'range': (1, 100),
            'label': 'Urban Development',
            'layer_name': 'Urban'
        },
        'mid_high': {
            'range': (23, 100),
            'label': 'Mid/High Urban Development',
            'layer_name': 'Mid/High Urban Cover'
        },
        'low': {
            'range': (1, 22),
            'label': 'Low Urban Development',
            'layer_name': 'Low Urban Cover'
        }
    },
    'default_variant': 'all',
    'distance_radius_m': 30,
    'focal_radius_m': 30,
    'focal_kernel': 'square',
    'count_scale': 30,
    'count_max_pixels': 1e9,
    'colors': {
        'forest': '0A782D',
        'forest_edge': '84CC94',
        'urban': '400987',
        'urban_edge': 'C69FF9',
        'forest_urban_edge': '1C04EC',
        'agriculture': 'EEBC14'
    },
    'legend_title': 'Classification'
}

# Export configuration
EXPORT_CONFIG = {
    'folder': 'slacc_exports',
    'land_cover_description': 'cumberlandLC',
    'edge_description': 'ForestUrbanEdge',
    'training_description': 'slacc_training_samples',
    'scale': 20,
    'max_pixels': 1300000000,
    'file_format': 'GeoTIFF',
    'export_training_samples': True
}

# Local analysis configuration
LOCAL_CONFIG = {
    'data_dir': 'data',
    'results_dir': 'data/results',
    'metadata_dir': 'data/export_metadata',
    'map_dir': 'data/maps',
    'test_size': 0.2
}

# ============ DEBUGGING AND LOGGING ============
DEBUG_CONFIG = {
    'verbose_logging': True,
    'dry_run_mode': False  # Build every image but do not start export tasks
}


def get_sensor_profile(name=None):
    """Return the sensor profile for ``name`` (defaults to the configured sensor)."""
    name = name or GEE_CONFIG['sensor']
    if name not in SENSOR_PROFILES:
        raise ValueError(f"Unknown sensor profile: {name}")
    return SENSOR_PROFILES[name]


def get_urban_variant(variant=None):
    """Return the urban range configuration for an edge map variant."""
    variant = variant or EDGE_CONFIG['default_variant']
    if variant not in EDGE_CONFIG['urban_variants']:
        valid = ', '.join(EDGE_CONFIG['urban_variants'])
        raise ValueError(f"Unknown edge variant: {variant} (expected one of {valid})")
    return EDGE_CONFIG['urban_variants'][variant]
