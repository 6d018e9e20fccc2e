"""
Local processing script for SLaCC outputs
This script works on the files exported to Google Drive: training sample CSVs,
the land cover GeoTIFF and the accuracy report. It cross-checks the Earth Engine
CART model with scikit-learn and produces statistics and plots.
"""

import numpy as np
import pandas as pd
from pathlib import Path
import rasterio
from sklearn.tree import DecisionTreeClassifier
from sklearn.model_selection import train_test_split
from sklearn.metrics import classification_report, accuracy_score, cohen_kappa_score
import joblib
import matplotlib.pyplot as plt
import seaborn as sns
from datetime import datetime
import sys

# Add project root to path for imports
sys.path.append(str(Path(__file__).parent.parent.parent))
sys.path.append(str(Path(__file__).parent.parent / 'gee'))
from config.land_cover_config import (
    LAND_COVER_CLASSES, CLASSIFIER_CONFIG, LOCAL_CONFIG
)
from legend import class_for_value


def accuracy_and_kappa(matrix):
    """Overall accuracy and Cohen's kappa of a square confusion matrix."""
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Confusion matrix must be square, got shape {matrix.shape}")

    total = matrix.sum()
    if total == 0:
        return 0.0, 0.0

    observed = np.trace(matrix) / total
    expected = (matrix.sum(axis=0) * matrix.sum(axis=1)).sum() / total ** 2
    if expected == 1:
        return float(observed), 0.0
    return float(observed), float((observed - expected) / (1 - expected))


def confusion_matrix_frame(matrix, labels=None):
    """
    Label an Earth Engine confusion matrix array.

    Without labels the matrix is assumed to be indexed by class value (as
    returned by ``classifier.confusionMatrix()``), and rows and columns that
    are empty on both axes are dropped.
    """
    matrix = np.asarray(matrix)
    if labels is None:
        keep = np.where((matrix.sum(axis=0) + matrix.sum(axis=1)) > 0)[0]
        matrix = matrix[np.ix_(keep, keep)]
        labels = [int(i) for i in keep]
    elif len(labels) != matrix.shape[0]:
        raise ValueError(f"Got {len(labels)} labels for a {matrix.shape[0]}-class matrix")

    frame = pd.DataFrame(matrix, index=labels, columns=labels)
    frame.index.name = 'actual'
    frame.columns.name = 'predicted'
    return frame


def edge_statistics(counts, variant, percent):
    """Tabulate edge pixel counts and the resulting percent edge."""
    rows = [{'layer': name, 'pixel_count': value} for name, value in counts.items()]
    stats_df = pd.DataFrame(rows)
    stats_df['variant'] = variant
    stats_df['percent_edge'] = percent
    return stats_df


class SLaCCLocalProcessor:
    def __init__(self, data_dir=None):
        """Initialize the local processor."""
        self.data_dir = Path(data_dir or LOCAL_CONFIG['data_dir'])
        self.results_dir = self.data_dir / 'results'
        self.training_dir = self.data_dir / 'training'

        # Create directories if they don't exist
        self.results_dir.mkdir(parents=True, exist_ok=True)
        self.training_dir.mkdir(parents=True, exist_ok=True)

        print(f"📂 Working directory: {self.data_dir}")

    def load_training_samples(self, training_csv_path):
        """Load training samples exported from GEE."""
        print(f"📊 Loading training samples from {training_csv_path}")

        training_df = pd.read_csv(training_csv_path)

        class_property = CLASSIFIER_CONFIG['class_property']
        feature_columns = [col for col in CLASSIFIER_CONFIG['bands'] if col in training_df.columns]
        if not feature_columns:
            raise ValueError(f"No prediction bands found in {training_csv_path}")
        if class_property not in training_df.columns:
            raise ValueError(f"Column '{class_property}' missing from {training_csv_path}")

        # Remove any rows with null values
        training_df = training_df.dropna(subset=feature_columns + [class_property])

        X = training_df[feature_columns]
        y = training_df[class_property].astype(int)

        print(f"✅ Loaded {len(training_df)} training samples")
        print(f"📈 Features: {feature_columns}")
        print(f"🎯 Classes: {sorted(y.unique())}")

        return X, y, feature_columns

    def train_reference_cart(self, X, y, test_size=None):
        """Train a scikit-learn CART with the same limits as the Earth Engine model."""
        test_size = test_size or LOCAL_CONFIG['test_size']
        cart = CLASSIFIER_CONFIG['cart']
        print("🤖 Training reference CART classifier")

        X_train, X_test, y_train, y_test = train_test_split(
            X, y, test_size=test_size, random_state=42, stratify=y
        )

        clf = DecisionTreeClassifier(
            max_leaf_nodes=cart['max_nodes'],
            min_samples_leaf=cart['min_leaf_population'],
            random_state=42
        )
        clf.fit(X_train, y_train)

        y_pred = clf.predict(X_test)
        accuracy = accuracy_score(y_test, y_pred)
        kappa = cohen_kappa_score(y_test, y_pred)

        print(f"✅ Training complete. Accuracy: {accuracy:.3f}, kappa: {kappa:.3f}")
        print("\n📋 Classification Report:")
        print(classification_report(y_test, y_pred, zero_division=0))

        return clf, accuracy, kappa, y_test, y_pred

    def save_model(self, classifier, feature_columns, accuracy):
        """Save the reference model."""
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        model_path = self.results_dir / f"slacc_reference_cart_{timestamp}_acc{accuracy:.3f}.joblib"

        model_data = {
            'classifier': classifier,
            'feature_columns': feature_columns,
            'accuracy': accuracy,
            'land_cover_classes': LAND_COVER_CLASSES,
            'training_timestamp': timestamp
        }

        joblib.dump(model_data, model_path)
        print(f"💾 Model saved: {model_path}")

        return model_path

    def load_model(self, model_path):
        """Load a saved reference model."""
        model_data = joblib.load(model_path)
        print(f"📤 Model loaded: {model_path}")
        return model_data

    def create_confusion_matrix_plot(self, frame, title):
        """Create and save a confusion matrix heatmap."""
        plt.figure(figsize=(8, 7))
        sns.heatmap(frame, annot=True, fmt='g', cmap='Blues')
        plt.title(title)
        plt.xlabel('Predicted Class')
        plt.ylabel('True Class')

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        slug = title.lower().replace(' ', '_')
        plot_path = self.results_dir / f"confusion_matrix_{slug}_{timestamp}.png"
        plt.savefig(plot_path, dpi=150, bbox_inches='tight')
        plt.close()

        print(f"📊 Confusion matrix saved: {plot_path}")
        return plot_path

    def report_accuracy(self, report):
        """Summarize an accuracy report returned by the Earth Engine processor."""
        validation = confusion_matrix_frame(report['validation_matrix'], report.get('class_order'))
        accuracy, kappa = accuracy_and_kappa(validation.values)

        print(f"📈 Validation accuracy {accuracy:.3f}, kappa {kappa:.3f}")
        self.create_confusion_matrix_plot(validation, 'Validation Error Matrix')
        self.create_confusion_matrix_plot(
            confusion_matrix_frame(report['training_matrix']), 'Training Confusion Matrix')

        return validation, accuracy, kappa

    def create_classification_statistics(self, classified_raster_path):
        """Generate per-class pixel counts and areas for the exported land cover map."""
        print("📊 Generating classification statistics")

        with rasterio.open(classified_raster_path) as src:
            data = src.read(1, masked=True)
            pixel_area_km2 = abs(src.res[0] * src.res[1]) / 1e6
            if src.crs is not None and src.crs.is_geographic:
                # Degrees to km at the raster's centre latitude
                center_lat = (src.bounds.top + src.bounds.bottom) / 2
                pixel_area_km2 = (abs(src.res[0]) * 111.32 * np.cos(np.radians(center_lat))
                                  * abs(src.res[1]) * 111.32)

        class_counts = {class_info['name']: 0 for class_info in LAND_COVER_CLASSES}
        for value, count in zip(*np.unique(data.compressed(), return_counts=True)):
            class_info = class_for_value(value)
            if class_info is not None:
                class_counts[class_info['name']] += int(count)

        stats = []
        for class_info in LAND_COVER_CLASSES:
            low, high = class_info['range']
            count = class_counts[class_info['name']]
            stats.append({
                'class_name': class_info['name'],
                'value_range': f"{low}-{high}",
                'pixel_count': count,
                'area_sq_km': round(count * pixel_area_km2, 2)
            })

        stats_df = pd.DataFrame(stats)
        total = stats_df['pixel_count'].sum()
        stats_df['percentage'] = (stats_df['pixel_count'] / total * 100).round(2) if total else 0.0

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        stats_path = self.results_dir / f"classification_statistics_{timestamp}.csv"
        stats_df.to_csv(stats_path, index=False)

        print("📈 Classification Statistics:")
        print(stats_df.to_string(index=False))
        print(f"💾 Statistics saved: {stats_path}")

        return stats_df, stats_path


def main():
    """Main execution function."""
    print("🚀 Starting SLaCC - local processing")

    base_dir = Path(__file__).parent.parent.parent
    processor = SLaCCLocalProcessor(base_dir / LOCAL_CONFIG['data_dir'])

    training_csv = processor.training_dir / 'slacc_training_samples.csv'
    if not training_csv.exists():
        print(f"❌ Training samples not found: {training_csv}")
        print("🔄 Please run the GEE classification first and download the CSV from Google Drive")
        return

    X, y, feature_columns = processor.load_training_samples(training_csv)
    clf, accuracy, kappa, y_test, y_pred = processor.train_reference_cart(X, y)
    processor.save_model(clf, feature_columns, accuracy)

    land_cover_files = list(processor.data_dir.glob('cumberlandLC*.tif'))
    if land_cover_files:
        processor.create_classification_statistics(land_cover_files[0])
    else:
        print("⚠️  No land cover GeoTIFF found. Download cumberlandLC.tif from Google Drive.")

    print(f"\n🎉 Local processing complete! Results in: {processor.results_dir}")


if __name__ == "__main__":
    main()
