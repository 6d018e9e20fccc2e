#!/usr/bin/env python3
"""
Tests for the Earth Engine classification processor.

The Earth Engine client is replaced with a MagicMock, so these tests check
which server-side operations are requested rather than their results.
"""

import json
from unittest.mock import MagicMock, call

import pytest

import slacc_gee_processor
from slacc_gee_processor import SLaCCEEProcessor, mask_clouds, save_export_metadata
from config.land_cover_config import SENSOR_PROFILES, DEBUG_CONFIG, CLASSIFIER_CONFIG


@pytest.fixture
def mock_ee(monkeypatch):
    fake = MagicMock()
    monkeypatch.setattr(slacc_gee_processor, 'ee', fake)
    return fake


@pytest.fixture
def processor(mock_ee):
    processor = SLaCCEEProcessor(initialize=False)
    mock_ee.reset_mock()
    return processor


def _image_with_qa(qa_band):
    image = MagicMock(name='image')
    qa = MagicMock(name='qa')
    optical = MagicMock(name='optical')
    image.select.side_effect = lambda bands: qa if bands == qa_band else optical
    return image, qa, optical


def test_mask_clouds_collection_1_bits():
    profile = SENSOR_PROFILES['landsat8_c01_sr']
    image, qa, optical = _image_with_qa('pixel_qa')

    result = mask_clouds(image, profile)

    assert qa.bitwiseAnd.call_args_list == [call(1 << 3), call(1 << 5)]
    optical.multiply.assert_called_once_with(0.0001)
    renamed = optical.multiply.return_value.add.return_value.rename
    renamed.assert_called_once_with(['B1', 'B2', 'B3', 'B4', 'B5', 'B6', 'B7'])
    masked = renamed.return_value.updateMask.return_value
    masked.copyProperties.assert_called_once_with(image, ['system:time_start'])
    assert result is masked.copyProperties.return_value


def test_mask_clouds_collection_2_bits():
    profile = SENSOR_PROFILES['landsat8_c02_l2']
    image, qa, optical = _image_with_qa('QA_PIXEL')

    mask_clouds(image, profile)

    # Shadow bit first, then cloud bit
    assert qa.bitwiseAnd.call_args_list == [call(1 << 4), call(1 << 3)]
    optical.multiply.return_value.add.assert_called_once_with(-0.2)


def test_region_from_tiger_counties(mock_ee):
    SLaCCEEProcessor(initialize=False)

    mock_ee.FeatureCollection.assert_called_once_with('TIGER/2018/Counties')
    assert mock_ee.Filter.eq.call_args_list == [call('STATEFP', '23'), call('NAME', 'Cumberland')]


def test_initialize_exits_when_authentication_fails(mock_ee):
    mock_ee.Initialize.side_effect = Exception('no credentials')
    mock_ee.Authenticate.side_effect = Exception('no browser')

    with pytest.raises(SystemExit):
        slacc_gee_processor.initialize_ee('demo-project')


def test_load_landsat_filters_date_and_region(processor, mock_ee):
    processor.load_landsat('2018-07-12', '2018-07-30')

    mock_ee.ImageCollection.assert_called_once_with('LANDSAT/LC08/C02/T1_L2')
    collection = mock_ee.ImageCollection.return_value
    collection.filterDate.assert_called_once_with('2018-07-12', '2018-07-30')
    collection.filterDate.return_value.filterBounds.assert_called_once_with(processor.region)


def test_make_composite_is_clipped_median(processor):
    collection = MagicMock()

    result = processor.make_composite(collection)

    median = collection.map.return_value.median
    median.assert_called_once_with()
    median.return_value.clip.assert_called_once_with(processor.region)
    assert result is median.return_value.clip.return_value


def test_load_impervious_masks_zero_values(processor, mock_ee):
    result = processor.load_impervious()

    mock_ee.ImageCollection.assert_called_once_with('USGS/NLCD_RELEASES/2016_REL')
    collection = mock_ee.ImageCollection.return_value
    collection.filterDate.assert_called_once_with('2016-01-01', '2017-01-01')
    selected = collection.filterDate.return_value.filterBounds.return_value.select
    selected.assert_called_once_with('impervious')
    reduced = selected.return_value.map.return_value.reduce.return_value
    reduced.selfMask.return_value.rename.assert_called_once_with('landcover')
    assert result is reduced.selfMask.return_value.rename.return_value


def test_training_features_are_tagged_and_merged_in_order(processor, mock_ee):
    processor.load_training_features()

    asset_ids = [c.args[0] for c in mock_ee.FeatureCollection.call_args_list]
    assert [a.rsplit('/', 1)[-1] for a in asset_ids] == [
        'coniferous', 'mixed', 'deciduous', 'agriculture', 'water'
    ]

    tag_functions = [c.args[0] for c in mock_ee.FeatureCollection.return_value.map.call_args_list]
    values = []
    for tag in tag_functions:
        feature = MagicMock()
        tag(feature)
        values.append(feature.set.call_args.args)
    assert values == [('landcover', v) for v in (101, 102, 103, 104, 105)]


def test_sample_training_points(processor):
    composite = MagicMock()

    processor.sample_training_points(composite, 'features')

    composite.select.assert_called_once_with(['B3', 'B4', 'B5', 'B6', 'B7'])
    sample = composite.select.return_value.sampleRegions
    sample.assert_called_once_with(collection='features', properties=['landcover'], scale=30)
    sample.return_value.randomColumn.assert_called_once_with('random', 0)


@pytest.mark.parametrize('split', [0, 1, 1.5, -0.2])
def test_split_rejects_out_of_range(processor, split):
    with pytest.raises(ValueError):
        processor.split_samples(MagicMock(), split)


def test_split_uses_random_column(processor, mock_ee):
    points = MagicMock()

    training, testing = processor.split_samples(points)

    mock_ee.Filter.lt.assert_called_once_with('random', 0.8)
    mock_ee.Filter.gte.assert_called_once_with('random', 0.8)
    assert points.filter.call_count == 2


def test_train_classifier_uses_cart_limits(processor, mock_ee):
    training = MagicMock()

    processor.train_classifier(training)

    mock_ee.Classifier.smileCart.assert_called_once_with(300, 5)
    mock_ee.Classifier.smileCart.return_value.train.assert_called_once_with(
        features=training,
        classProperty='landcover',
        inputProperties=['B3', 'B4', 'B5', 'B6', 'B7']
    )


def test_assess_accuracy(processor, mock_ee):
    mock_ee.Dictionary.return_value.getInfo.return_value = {
        'training_matrix': [[1]],
        'training_accuracy': 0.95,
        'training_kappa': 0.93,
        'validation_matrix': [[1]],
        'validation_accuracy': 0.81,
        'validation_kappa': 0.76,
        'producers_accuracy': [[1.0]],
        'consumers_accuracy': [[1.0]]
    }
    classifier = MagicMock()
    testing = MagicMock()

    report = processor.assess_accuracy(classifier, testing)

    testing.classify.assert_called_once_with(classifier)
    testing.classify.return_value.errorMatrix.assert_called_once_with(
        'landcover', 'classification', [101, 102, 103, 104, 105])
    assert report['validation_accuracy'] == 0.81
    assert report['class_order'] == [101, 102, 103, 104, 105]


def test_final_map_blends_impervious_over_classes(processor):
    classified = MagicMock()
    impervious = MagicMock()

    result = processor.build_final_map(classified, impervious)

    classified.rename.assert_called_once_with('landcover')
    classified.rename.return_value.blend.assert_called_once_with(impervious.rename.return_value)
    assert result is classified.rename.return_value.blend.return_value


def test_export_image_starts_task(processor, mock_ee, monkeypatch):
    monkeypatch.setitem(DEBUG_CONFIG, 'dry_run_mode', False)

    task = processor.export_image('final', 'cumberlandLC')

    kwargs = mock_ee.batch.Export.image.toDrive.call_args.kwargs
    assert kwargs['description'] == 'cumberlandLC'
    assert kwargs['scale'] == 20
    assert kwargs['maxPixels'] == 1300000000
    assert kwargs['region'] is processor.region
    task.start.assert_called_once_with()


def test_export_image_dry_run(processor, mock_ee, monkeypatch):
    monkeypatch.setitem(DEBUG_CONFIG, 'dry_run_mode', True)

    task = processor.export_image('final', 'cumberlandLC')

    task.start.assert_not_called()


def test_run_classification(processor, mock_ee, monkeypatch):
    monkeypatch.setitem(DEBUG_CONFIG, 'dry_run_mode', False)
    mock_ee.Dictionary.return_value.getInfo.return_value = {
        'samples': 100, 'training': 80, 'testing': 20,
        'training_matrix': [[1]], 'training_accuracy': 0.9, 'training_kappa': 0.88,
        'validation_matrix': [[1]], 'validation_accuracy': 0.8, 'validation_kappa': 0.75,
        'producers_accuracy': [[1.0]], 'consumers_accuracy': [[1.0]]
    }

    result = processor.run_classification()

    assert set(result['tasks']) == {'cumberlandLC', 'slacc_training_samples'}
    assert result['counts']['samples'] == 100
    assert result['accuracy']['validation_kappa'] == 0.75


def _stub_samples(processor, mock_ee, monkeypatch):
    mock_ee.Dictionary.return_value.getInfo.return_value = {
        'samples': 100, 'training': 80, 'testing': 20,
        'training_accuracy': 0.9, 'training_kappa': 0.88,
        'validation_accuracy': 0.8, 'validation_kappa': 0.75, 'validation_matrix': [[1]]
    }
    points, training, testing = MagicMock(name='points'), MagicMock(name='training'), MagicMock(name='testing')
    monkeypatch.setattr(processor, 'sample_training_points', lambda composite, features: points)
    monkeypatch.setattr(processor, 'split_samples', lambda samples: (training, testing))
    return points, training, testing


def test_run_classification_trains_on_every_sample(processor, mock_ee, monkeypatch):
    points, training, testing = _stub_samples(processor, mock_ee, monkeypatch)

    processor.run_classification(export=False)

    train = mock_ee.Classifier.smileCart.return_value.train
    assert train.call_args.kwargs['features'] is points
    train.return_value.confusionMatrix.assert_called_once_with()
    testing.classify.assert_called_once_with(train.return_value)


def test_run_classification_trains_on_split_when_configured(processor, mock_ee, monkeypatch):
    points, training, testing = _stub_samples(processor, mock_ee, monkeypatch)
    monkeypatch.setitem(CLASSIFIER_CONFIG, 'train_on', 'training')

    processor.run_classification(export=False)

    train = mock_ee.Classifier.smileCart.return_value.train
    assert train.call_args.kwargs['features'] is training


def test_run_classification_rejects_unknown_training_set(processor, mock_ee, monkeypatch):
    _stub_samples(processor, mock_ee, monkeypatch)
    monkeypatch.setitem(CLASSIFIER_CONFIG, 'train_on', 'testing')

    with pytest.raises(ValueError):
        processor.run_classification(export=False)


def test_save_export_metadata_appends(tmp_path):
    metadata_file = tmp_path / 'meta' / 'exports.json'

    save_export_metadata({'description': 'cumberlandLC'}, metadata_file)
    save_export_metadata({'description': 'ForestUrbanEdge'}, metadata_file)

    records = json.loads(metadata_file.read_text())
    assert [r['description'] for r in records] == ['cumberlandLC', 'ForestUrbanEdge']
