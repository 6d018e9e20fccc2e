"""
Main workflow script for SLaCC (Supervised Land Cover Classification)
This script orchestrates the classification, edge mapping and local analysis.
"""

import json
import sys
from pathlib import Path
from datetime import datetime
import argparse

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT / "scripts" / "gee"))
sys.path.insert(0, str(PROJECT_ROOT / "scripts" / "local"))

from config.land_cover_config import (
    LAND_COVER_CLASSES, GEE_CONFIG, EDGE_CONFIG, EXPORT_CONFIG, LOCAL_CONFIG, DEBUG_CONFIG
)


def _export_record(task, description, start_date, end_date):
    return {
        'description': description,
        'task_id': getattr(task, 'id', None),
        'date_range': [start_date, end_date],
        'scale': EXPORT_CONFIG['scale'],
        'dry_run': DEBUG_CONFIG['dry_run_mode'],
        'processing_time': datetime.now().isoformat()
    }


def run_classification(start_date=None, end_date=None, use_local_training=False,
                       export=True, make_map=True, processor=None):
    """Run the Earth Engine supervised classification."""
    print("\n" + "="*60)
    print("📡 STEP 1: Supervised Land Cover Classification")
    print("="*60)

    start_date = start_date or GEE_CONFIG['date_range']['start']
    end_date = end_date or GEE_CONFIG['date_range']['end']

    try:
        from slacc_gee_processor import SLaCCEEProcessor, save_export_metadata

        processor = processor or SLaCCEEProcessor()
        result = processor.run_classification(start_date, end_date, use_local_training, export)

        metadata_dir = PROJECT_ROOT / LOCAL_CONFIG['metadata_dir']
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        for description, task in result['tasks'].items():
            save_export_metadata(
                _export_record(task, description, start_date, end_date),
                metadata_dir / f"exports_{timestamp}.json"
            )

        report_path = PROJECT_ROOT / LOCAL_CONFIG['results_dir'] / f"accuracy_report_{timestamp}.json"
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with open(report_path, 'w') as f:
            json.dump({**result['accuracy'], 'counts': result['counts']}, f, indent=2)
        print(f"💾 Accuracy report saved: {report_path}")

        if make_map:
            from map_display import create_classification_map
            create_classification_map(
                result['composite'], result['final_map'],
                PROJECT_ROOT / LOCAL_CONFIG['map_dir'] / "land_classification.html"
            )

        print("✅ Classification complete")
        result['processor'] = processor
        result['date_range'] = [start_date, end_date]
        return result

    except Exception as e:
        print(f"❌ GEE classification failed: {e}")
        print("🔑 Make sure you're authenticated with Google Earth Engine:")
        print("   earthengine authenticate")
        return None


def run_edge_mapping(classification, variant=None, export=True, make_map=True):
    """Derive forest--urban edges from the final land cover map."""
    print("\n" + "="*60)
    print("🌲 STEP 2: Edge Classification")
    print("="*60)

    try:
        from edge_classification import run_edge_analysis, edge_pixel_counts, percent_edge

        processor = classification['processor']
        analysis = run_edge_analysis(classification['final_map'], variant)
        counts = edge_pixel_counts(analysis, processor.region)
        percent = percent_edge(counts)

        if percent is None:
            print("⚠️  No forest, urban or agriculture pixels found; percent edge undefined")
        else:
            print(f"📈 Forest--urban edge: {percent:.2f}% of forest, urban and agriculture pixels")

        from slacc_local_processor import edge_statistics
        stats_path = PROJECT_ROOT / LOCAL_CONFIG['results_dir'] / f"edge_statistics_{analysis['variant']}.csv"
        stats_path.parent.mkdir(parents=True, exist_ok=True)
        edge_statistics(counts, analysis['variant'], percent).to_csv(stats_path, index=False)
        print(f"💾 Edge statistics saved: {stats_path}")

        if export:
            from slacc_gee_processor import save_export_metadata

            description = EXPORT_CONFIG['edge_description']
            task = processor.export_image(analysis['forest_urban_edge'], description)
            save_export_metadata(
                _export_record(task, description, *classification['date_range']),
                PROJECT_ROOT / LOCAL_CONFIG['metadata_dir'] / f"exports_edges_{analysis['variant']}.json"
            )

        if make_map:
            from map_display import create_edge_map
            create_edge_map(
                analysis,
                PROJECT_ROOT / LOCAL_CONFIG['map_dir'] / f"edges_{analysis['variant']}.html"
            )

        print("✅ Edge classification complete")
        return {'analysis': analysis, 'counts': counts, 'percent_edge': percent}

    except Exception as e:
        print(f"❌ Edge classification failed: {e}")
        return None


def run_local_processing(training_csv=None, raster=None, report=None):
    """Run local analysis of the exported artefacts."""
    print("\n" + "="*60)
    print("🗺️  STEP 3: Local Analysis")
    print("="*60)

    try:
        from slacc_local_processor import SLaCCLocalProcessor

        processor = SLaCCLocalProcessor(PROJECT_ROOT / LOCAL_CONFIG['data_dir'])

        if report is None:
            reports = sorted((PROJECT_ROOT / LOCAL_CONFIG['results_dir']).glob("accuracy_report_*.json"))
            if reports:
                with open(reports[-1]) as f:
                    report = json.load(f)
        if report is not None:
            processor.report_accuracy(report)

        training_csv = Path(training_csv) if training_csv else processor.training_dir / "slacc_training_samples.csv"
        if training_csv.exists():
            X, y, feature_columns = processor.load_training_samples(training_csv)
            clf, accuracy, kappa, _, _ = processor.train_reference_cart(X, y)
            processor.save_model(clf, feature_columns, accuracy)
        else:
            print(f"⚠️  Training samples not found: {training_csv}")
            print("📥 Download the training CSV from Google Drive and place it in data/training/")
            models = sorted(processor.results_dir.glob("slacc_reference_cart_*.joblib"))
            if models:
                model_data = processor.load_model(models[-1])
                print(f"🤖 Using saved reference model (accuracy {model_data['accuracy']:.3f}, "
                      f"trained {model_data['training_timestamp']})")

        if raster:
            processor.create_classification_statistics(raster)

        print("✅ Local analysis complete")

    except Exception as e:
        print(f"❌ Local analysis failed: {e}")
        return False

    return True


def show_task_status():
    """Print the most recent Earth Engine export tasks."""
    try:
        from slacc_gee_processor import initialize_ee, list_tasks

        initialize_ee()
        for status in list_tasks():
            print(f"   {status.get('state', 'UNKNOWN'):10} {status.get('description', '')}")
    except Exception as e:
        print(f"❌ Could not list tasks: {e}")
        return False
    return True


def create_project_summary():
    """Print a summary of the project configuration."""
    print("\n" + "="*60)
    print("📋 PROJECT SUMMARY")
    print("="*60)

    dates = GEE_CONFIG['date_range']
    region = GEE_CONFIG['region']
    summary = f"""
🌍 SLaCC - Supervised Land Cover Classification
================================================

📍 Region: {region['county_name']} County (state FIPS {region['state_fips']})
📅 Imagery window: {dates['start']} → {dates['end']}
🛰️  Sensor: {GEE_CONFIG['sensor']}

📊 Land Cover Classes:
"""
    for class_info in LAND_COVER_CLASSES:
        low, high = class_info['range']
        summary += f"   {low:3d}-{high:<3d} {class_info['name']:26} #{class_info['color']}\n"

    summary += "\n🌲 Edge variants:\n"
    for name, variant in EDGE_CONFIG['urban_variants'].items():
        low, high = variant['range']
        summary += f"   {name:9} {variant['label']} ({low}-{high})\n"

    summary += """
🚀 Usage:
   python main_workflow.py --classify
   python main_workflow.py --edges mid_high
   python main_workflow.py --local --raster data/cumberlandLC.tif
"""
    print(summary)
    return summary


def build_parser():
    parser = argparse.ArgumentParser(description="SLaCC Supervised Land Cover Classification Workflow")
    parser.add_argument("--classify", action="store_true", help="Run the land cover classification")
    parser.add_argument("--edges", nargs="?", const=EDGE_CONFIG['default_variant'],
                        choices=list(EDGE_CONFIG['urban_variants']),
                        help="Build the forest--urban edge map for an urban variant")
    parser.add_argument("--local", action="store_true", help="Run local analysis of exported data")
    parser.add_argument("--full", action="store_true", help="Run classification, edges and local analysis")
    parser.add_argument("--status", action="store_true", help="List recent Earth Engine tasks")
    parser.add_argument("--summary", action="store_true", help="Print the project summary only")
    parser.add_argument("--start", type=str, help="Imagery start date (YYYY-MM-DD)")
    parser.add_argument("--end", type=str, help="Imagery end date (YYYY-MM-DD)")
    parser.add_argument("--local-training", action="store_true",
                        help="Read training points from local vector files instead of GEE assets")
    parser.add_argument("--dry-run", action="store_true", help="Build everything but start no exports")
    parser.add_argument("--no-map", action="store_true", help="Skip the HTML maps")
    parser.add_argument("--training-csv", type=str, help="Path to exported training samples CSV")
    parser.add_argument("--raster", type=str, help="Path to the exported land cover GeoTIFF")
    return parser


def main(argv=None):
    """Main workflow execution."""
    args = build_parser().parse_args(argv)

    print("🚀 SLaCC Supervised Land Cover Classification Workflow")
    print("=" * 50)

    if args.summary or not any([args.classify, args.edges, args.local, args.full, args.status]):
        create_project_summary()
        return 0

    if args.dry_run:
        DEBUG_CONFIG['dry_run_mode'] = True

    if args.status and not show_task_status():
        return 1

    make_map = not args.no_map
    classification = None

    if args.classify or args.edges or args.full:
        # Edges alone still need the final map, but not its export
        export_land_cover = bool(args.classify or args.full)
        classification = run_classification(
            args.start, args.end, args.local_training,
            export=export_land_cover, make_map=make_map and export_land_cover
        )
        if classification is None:
            print("⚠️  Classification failed, skipping remaining steps")
            return 1

    if args.edges or args.full:
        edges = run_edge_mapping(classification, args.edges, make_map=make_map)
        if edges is None and args.full:
            return 1

    if args.local or args.full:
        report = classification['accuracy'] if classification else None
        if not run_local_processing(args.training_csv, args.raster, report):
            return 1

    print("\n🎉 Workflow complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
