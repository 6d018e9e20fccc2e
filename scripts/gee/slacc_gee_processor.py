"""
Google Earth Engine script for Cumberland County supervised land cover classification
This script handles imagery filtering, cloud masking, compositing, CART training,
accuracy assessment, blending with NLCD impervious surface and export.
"""

import ee
import geopandas as gpd
import json
from datetime import datetime
from pathlib import Path
import sys

# Add project root to path for imports
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.land_cover_config import (
    GEE_CONFIG, TRAINING_CLASSES, CLASSIFIER_CONFIG, EXPORT_CONFIG, DEBUG_CONFIG,
    get_sensor_profile
)


# ============ GEE BOOTSTRAP ============
def initialize_ee(project=None):
    """Initialize Google Earth Engine, authenticating first if needed."""
    project = project or GEE_CONFIG['project_id']
    try:
        ee.Initialize(project=project)
        print(f"✅ Google Earth Engine initialized (project: {project})")
    except Exception:
        print('🔑 Authenticating and initializing GEE...')
        try:
            ee.Authenticate()
            ee.Initialize(project=project)
            print('✅ GEE authenticated and initialized successfully!')
        except Exception as e:
            print(f"❌ Error initializing Earth Engine: {e}")
            print("Please authenticate with: earthengine authenticate")
            sys.exit(1)


# ============ CLOUD MASK ============
def mask_clouds(image, profile=None):
    """
    Mask clouds and cloud shadows from the Landsat 8 QA band.

    Keeps pixels whose cloud-shadow and cloud bits are both zero, scales the
    optical bands to reflectance and renames them B1..B7.
    """
    profile = profile or get_sensor_profile()
    cloud_shadow_bit_mask = 1 << profile['cloud_shadow_bit']
    clouds_bit_mask = 1 << profile['cloud_bit']

    qa = image.select(profile['qa_band'])
    mask = (qa.bitwiseAnd(cloud_shadow_bit_mask).eq(0)
            .And(qa.bitwiseAnd(clouds_bit_mask).eq(0)))

    optical = (image.select(profile['optical_bands'])
               .multiply(profile['scale_factor'])
               .add(profile['offset'])
               .rename(['B1', 'B2', 'B3', 'B4', 'B5', 'B6', 'B7']))

    return (optical.updateMask(mask)
            .copyProperties(image, ['system:time_start']))


def save_export_metadata(record, metadata_file):
    """Append an export record to a JSON metadata file."""
    metadata_file = Path(metadata_file)
    metadata_file.parent.mkdir(parents=True, exist_ok=True)

    metadata = []
    if metadata_file.exists():
        with open(metadata_file, 'r') as f:
            metadata = json.load(f)

    metadata.append(record)

    with open(metadata_file, 'w') as f:
        json.dump(metadata, f, indent=2, default=str)


def list_tasks(limit=20):
    """Return the status dictionaries of the most recent Earth Engine tasks."""
    return [task.status() for task in ee.batch.Task.list()[:limit]]


class SLaCCEEProcessor:
    def __init__(self, initialize=True, project=None, sensor=None):
        """Initialize the Earth Engine processor."""
        if initialize:
            initialize_ee(project)
        self.profile = get_sensor_profile(sensor)
        self.region = self.create_region()

    def create_region(self):
        """Create the county area of interest."""
        region_config = GEE_CONFIG['region']
        if region_config['asset_id']:
            return ee.FeatureCollection(region_config['asset_id']).geometry()

        counties = ee.FeatureCollection(region_config['counties_collection'])
        county = (counties
                  .filter(ee.Filter.eq('STATEFP', region_config['state_fips']))
                  .filter(ee.Filter.eq('NAME', region_config['county_name']))
                  .first())
        return ee.Feature(county).geometry()

    def load_landsat(self, start_date=None, end_date=None):
        """Load Landsat 8 imagery for the county and date window."""
        start_date = start_date or GEE_CONFIG['date_range']['start']
        end_date = end_date or GEE_CONFIG['date_range']['end']

        print(f"📡 Loading {self.profile['description']} from {start_date} to {end_date}")

        return (ee.ImageCollection(self.profile['collection_id'])
                .filterDate(start_date, end_date)
                .filterBounds(self.region))

    def make_composite(self, collection):
        """Cloud mask, median reduce and clip to the county."""
        profile = self.profile
        return (collection
                .map(lambda image: mask_clouds(image, profile))
                .median()
                .clip(self.region))

    def load_impervious(self):
        """NLCD percent impervious surface with zero values masked out."""
        config = GEE_CONFIG['impervious']
        region = self.region

        impervious = (ee.ImageCollection(config['collection_id'])
                      .filterDate(config['start'], config['end'])
                      .filterBounds(region)
                      .select(config['band'])
                      .map(lambda image: image.clip(region)))

        reduced = impervious.reduce(ee.Reducer.median())
        return reduced.selfMask().rename(CLASSIFIER_CONFIG['output_band'])

    # ============ TRAINING DATA ============
    def load_training_features(self, use_local_files=False):
        """Merge the per-class training sets into one FeatureCollection."""
        class_property = CLASSIFIER_CONFIG['class_property']
        merged = None

        for class_name, class_config in TRAINING_CLASSES.items():
            if use_local_files:
                fc = self.vector_file_to_ee(class_config['local_file'], class_config['landcover'])
            else:
                value = class_config['landcover']
                fc = (ee.FeatureCollection(class_config['asset_id'])
                      .map(lambda feature, value=value: feature.set(class_property, value)))

            if DEBUG_CONFIG['verbose_logging']:
                print(f"   📍 {class_name}: landcover {class_config['landcover']}")

            merged = fc if merged is None else merged.merge(fc)

        return merged

    def vector_file_to_ee(self, vector_path, landcover):
        """Convert a local shapefile/GeoJSON of training points to a FeatureCollection."""
        print(f"📊 Preparing training data from {vector_path}")

        training_gdf = gpd.read_file(vector_path)
        if training_gdf.crs is not None and training_gdf.crs.to_epsg() != 4326:
            training_gdf = training_gdf.to_crs(epsg=4326)

        class_property = CLASSIFIER_CONFIG['class_property']
        features = []
        for _, row in training_gdf.iterrows():
            geometry = ee.Geometry(row.geometry.__geo_interface__)
            features.append(ee.Feature(geometry, {class_property: landcover}))

        print(f"✅ Loaded {len(features)} training features")
        return ee.FeatureCollection(features)

    def sample_training_points(self, composite, training_fc):
        """Overlay training points on the composite and add a random column."""
        print("🔍 Sampling composite at training points")

        return (composite.select(CLASSIFIER_CONFIG['bands'])
                .sampleRegions(
                    collection=training_fc,
                    properties=[CLASSIFIER_CONFIG['class_property']],
                    scale=CLASSIFIER_CONFIG['sample_scale'])
                .randomColumn('random', CLASSIFIER_CONFIG['random_seed']))

    def split_samples(self, points, split=None):
        """Split samples into training (random < split) and testing sets."""
        split = CLASSIFIER_CONFIG['training_split'] if split is None else split
        if not 0 < split < 1:
            raise ValueError(f"Training split must be between 0 and 1, got {split}")

        training = points.filter(ee.Filter.lt('random', split))
        testing = points.filter(ee.Filter.gte('random', split))
        return training, testing

    def sample_counts(self, points, training, testing):
        """Sizes of the full, training and testing sample sets."""
        counts = ee.Dictionary({
            'samples': points.size(),
            'training': training.size(),
            'testing': testing.size()
        }).getInfo()

        print(f"   Samples n = {counts['samples']}")
        print(f"   Training n = {counts['training']}")
        print(f"   Testing n = {counts['testing']}")
        return counts

    # ============ CLASSIFICATION ============
    def train_classifier(self, training):
        """Train a CART classifier on the given samples."""
        cart = CLASSIFIER_CONFIG['cart']
        print(f"🤖 Training CART classifier (maxNodes={cart['max_nodes']}, "
              f"minLeafPopulation={cart['min_leaf_population']})")

        return ee.Classifier.smileCart(cart['max_nodes'], cart['min_leaf_population']).train(
            features=training,
            classProperty=CLASSIFIER_CONFIG['class_property'],
            inputProperties=CLASSIFIER_CONFIG['bands']
        )

    def assess_accuracy(self, classifier, testing):
        """Training confusion matrix and validation error matrix with summary statistics."""
        class_order = [c['landcover'] for c in TRAINING_CLASSES.values()]

        training_matrix = classifier.confusionMatrix()
        validation = testing.classify(classifier)
        validation_matrix = validation.errorMatrix(
            CLASSIFIER_CONFIG['class_property'], 'classification', class_order)

        report = ee.Dictionary({
            'training_matrix': training_matrix.array(),
            'training_accuracy': training_matrix.accuracy(),
            'training_kappa': training_matrix.kappa(),
            'validation_matrix': validation_matrix.array(),
            'validation_accuracy': validation_matrix.accuracy(),
            'validation_kappa': validation_matrix.kappa(),
            'producers_accuracy': validation_matrix.producersAccuracy(),
            'consumers_accuracy': validation_matrix.consumersAccuracy()
        }).getInfo()
        report['class_order'] = class_order

        print(f"📊 Training overall accuracy: {report['training_accuracy']:.3f}")
        print(f"📊 Training kappa: {report['training_kappa']:.3f}")
        print(f"📊 Validation overall accuracy: {report['validation_accuracy']:.3f}")
        print(f"📊 Validation kappa: {report['validation_kappa']:.3f}")
        if DEBUG_CONFIG['verbose_logging']:
            print(f"   Validation error matrix: {report['validation_matrix']}")

        return report

    def classify(self, composite, classifier):
        """Apply the trained classifier to the composite."""
        return composite.select(CLASSIFIER_CONFIG['bands']).classify(classifier)

    def build_final_map(self, classified, impervious):
        """Overlay impervious surface (1-100) on the supervised classes (101-105)."""
        output_band = CLASSIFIER_CONFIG['output_band']
        return classified.rename(output_band).blend(impervious.rename(output_band))

    # ============ EXPORT ============
    def export_image(self, image, description, region=None, scale=None):
        """Export an image to Google Drive as GeoTIFF."""
        print(f"📤 Exporting image: {description}")

        task = ee.batch.Export.image.toDrive(
            image=image,
            description=description,
            folder=EXPORT_CONFIG['folder'],
            fileNamePrefix=description,
            region=region or self.region,
            scale=scale or EXPORT_CONFIG['scale'],
            maxPixels=EXPORT_CONFIG['max_pixels'],
            fileFormat=EXPORT_CONFIG['file_format']
        )
        return self._start(task, description)

    def export_training_samples(self, points, description=None):
        """Export sampled training points to Google Drive as CSV."""
        description = description or EXPORT_CONFIG['training_description']
        print(f"💾 Exporting training samples: {description}")

        task = ee.batch.Export.table.toDrive(
            collection=points,
            description=description,
            folder=EXPORT_CONFIG['folder'],
            fileFormat='CSV'
        )
        return self._start(task, description)

    def _start(self, task, description):
        if DEBUG_CONFIG['dry_run_mode']:
            print(f"   🏃 DRY RUN MODE - not starting {description}")
            return task
        task.start()
        print(f"✅ Export task started for {description}")
        return task

    def run_classification(self, start_date=None, end_date=None, use_local_training=False,
                           export=True):
        """Run the whole supervised classification and return its products."""
        collection = self.load_landsat(start_date, end_date)
        composite = self.make_composite(collection)
        impervious = self.load_impervious()

        training_fc = self.load_training_features(use_local_training)
        points = self.sample_training_points(composite, training_fc)
        training, testing = self.split_samples(points)
        counts = self.sample_counts(points, training, testing)

        train_sets = {'points': points, 'training': training}
        train_on = CLASSIFIER_CONFIG['train_on']
        if train_on not in train_sets:
            raise ValueError(f"Unknown training set '{train_on}', expected one of {list(train_sets)}")
        classifier = self.train_classifier(train_sets[train_on])
        report = self.assess_accuracy(classifier, testing)

        classified = self.classify(composite, classifier)
        final_map = self.build_final_map(classified, impervious)

        tasks = {}
        if export:
            description = EXPORT_CONFIG['land_cover_description']
            tasks[description] = self.export_image(final_map, description)
            if EXPORT_CONFIG['export_training_samples']:
                description = EXPORT_CONFIG['training_description']
                tasks[description] = self.export_training_samples(points, description)

        return {
            'composite': composite,
            'impervious': impervious,
            'points': points,
            'classifier': classifier,
            'classified': classified,
            'final_map': final_map,
            'counts': counts,
            'accuracy': report,
            'tasks': tasks,
            'timestamp': datetime.now().isoformat()
        }


def main():
    """Main execution function."""
    print("🚀 Starting SLaCC - Cumberland County supervised classification")

    processor = SLaCCEEProcessor()
    result = processor.run_classification()

    print(f"🎯 Validation accuracy: {result['accuracy']['validation_accuracy']:.3f}")
    print("📁 Check the GEE Tasks panel and Google Drive for exported data")


if __name__ == "__main__":
    main()
