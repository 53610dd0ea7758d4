#!/usr/bin/env python3
"""
Train Scoring Model Script
==========================
Command-line interface for the corpus-analysis trainer.

Samples popular videos per category, analyses their thumbnails and writes
findings.json and scoring_model.json.

Usage:
    python scripts/train_model.py
    python scripts/train_model.py --sample-size 20 --workers 8
    python scripts/train_model.py --categories 20,10 --output-dir runs/exp1
    python scripts/train_model.py --no-csv
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from thumbscore.config import (
    set_config,
    get_training_config,
    apply_environment_overrides,
    load_training_config,
)
from thumbscore.corpus.pipeline import train_model
from thumbscore.logging_config import get_research_logger, get_run_log_path

logger = get_research_logger("cli", log_to_file=False)


def select_categories(all_categories: dict, selection: str) -> dict:
    """
    Pick categories by id or display name from a comma-separated list.

    Raises:
        ValueError: If a requested category is unknown
    """
    by_name = {name.lower(): cid for cid, name in all_categories.items()}
    selected = {}
    for token in (t.strip() for t in selection.split(",") if t.strip()):
        cid = token if token in all_categories else by_name.get(token.lower())
        if cid is None:
            raise ValueError(f"Unknown category: {token}")
        selected[cid] = all_categories[cid]
    return selected


def main():
    parser = argparse.ArgumentParser(
        description="Train the thumbnail scoring model from popular videos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Train with defaults (10 videos per category)
    python scripts/train_model.py

    # Bigger sample, more concurrent thumbnail analyses
    python scripts/train_model.py --sample-size 25 --workers 8

    # Only Gaming and Music, written to a separate directory
    python scripts/train_model.py --categories Gaming,10 --output-dir runs/music_gaming
        """
    )

    parser.add_argument(
        '--sample-size', '-n',
        type=int,
        default=None,
        help='Videos to sample per category (default: from config)'
    )

    parser.add_argument(
        '--categories', '-c',
        type=str,
        default=None,
        help='Comma-separated category ids or names (default: all configured)'
    )

    parser.add_argument(
        '--workers', '-w',
        type=int,
        default=None,
        help='Maximum concurrent thumbnail analyses'
    )

    parser.add_argument(
        '--output-dir', '-o',
        type=str,
        default=None,
        help='Directory for data and artifacts (default: data/)'
    )

    parser.add_argument(
        '--no-csv',
        action='store_true',
        help='Skip writing thumbnail_analysis.csv'
    )

    parser.add_argument(
        '--config',
        type=str,
        metavar='FILE',
        help='Load configuration from a JSON file'
    )

    parser.add_argument(
        '--experiment', '-e',
        type=str,
        default=None,
        help='Experiment name used for log files'
    )

    args = parser.parse_args()

    load_dotenv()
    config = (load_training_config(args.config) if args.config
              else get_training_config(args.experiment or "corpus_training"))
    apply_environment_overrides(config)

    if args.sample_size is not None:
        if args.sample_size < 1:
            parser.error("--sample-size must be at least 1")
        config.corpus.sample_size_per_category = args.sample_size
    if args.workers is not None:
        if args.workers < 1:
            parser.error("--workers must be at least 1")
        config.corpus.max_workers = args.workers
    if args.categories:
        try:
            config.corpus.categories = select_categories(config.corpus.categories, args.categories)
        except ValueError as e:
            parser.error(str(e))
    if args.output_dir:
        output_dir = Path(args.output_dir).resolve()
        config.paths.data_dir = str(output_dir)
        config.paths.analysis_dir = str(output_dir / "analysis")
        config.paths.thumbnails_dir = str(output_dir / "thumbnails")
    if args.no_csv:
        config.corpus.write_csv = False
    if args.experiment:
        config.research.experiment_name = args.experiment

    set_config(config)

    print("=" * 60)
    print("THUMBNAIL SCORING MODEL TRAINING")
    print("=" * 60)
    print(f"Categories: {', '.join(config.corpus.categories.values())}")
    print(f"Sample size: {config.corpus.sample_size_per_category} per category")
    print(f"Workers: {config.corpus.max_workers}")
    print(f"Output: {config.paths.data}")
    print("=" * 60)
    print()

    try:
        context = train_model(config)
    except RuntimeError as e:
        logger.error(f"Training failed: {e}")
        print(f"Error: {e}")
        return 1

    print_summary(context)
    return 0


def print_summary(context) -> None:
    print()
    print("=" * 60)
    print("RESULTS")
    print("=" * 60)
    print(f"Run ID: {context.run_id}")
    print(f"Videos sampled: {len(context.videos)}")
    print(f"Thumbnails analysed: {len(context.thumbnails)}")
    print(f"Skipped: {len(context.failed_videos)}")

    if context.used_default:
        print()
        print("WARNING: no thumbnails could be analysed; the default model was written.")

    print()
    print("Weights:")
    for key, value in context.model.weights.to_dict().items():
        print(f"  {key:<14} {value:.3f}")

    print()
    print("Stages:")
    for result in context.stage_results:
        status = "OK" if result.success else "FAILED"
        print(f"  {result.stage_name:<20} {status:<7} {result.duration_seconds:6.2f}s  "
              f"{result.output_summary or result.error_message or ''}")

    print()
    print("Files:")
    for label, path in context.output_files.items():
        print(f"  {label:<9} {path}")
    print(f"  {'log':<9} {get_run_log_path(context.config.research.experiment_name)}")


if __name__ == "__main__":
    sys.exit(main())
