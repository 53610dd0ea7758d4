#!/usr/bin/env python3
"""
Score Thumbnail Script
======================
Score a single thumbnail from the command line and print the result as JSON.

Input is either a VisionFeatures JSON file or an image, which is sent to
the Vision API first (GOOGLE_CLOUD_VISION_API_KEY must be set).

Usage:
    python scripts/score_thumbnail.py --features features.json
    python scripts/score_thumbnail.py --image thumb.jpg --category Gaming
    python scripts/score_thumbnail.py --image thumb.jpg --recommend
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from thumbscore.config import get_config, apply_environment_overrides
from thumbscore.corpus.clients import VisionClient
from thumbscore.errors import ThumbScoreError
from thumbscore.model_store import ModelRegistry
from thumbscore.models import VisionFeatures
from thumbscore.scoring import ThumbnailScorer
from thumbscore.services.recommendation_service import RecommendationService


def load_features(args, config) -> VisionFeatures:
    if args.features:
        with open(args.features, 'r', encoding='utf-8') as f:
            return VisionFeatures.from_dict(json.load(f))
    image_bytes = Path(args.image).read_bytes()
    return VisionClient(config.vision).extract(image_bytes)


def main():
    parser = argparse.ArgumentParser(description="Score a thumbnail")

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--features', '-f', type=str, help='VisionFeatures JSON file')
    source.add_argument('--image', '-i', type=str, help='Thumbnail image file')

    parser.add_argument('--category', '-c', type=str, default=None,
                        help='Content category to score against')
    parser.add_argument('--recommend', '-r', action='store_true',
                        help='Include improvement recommendations')
    parser.add_argument('--show-features', action='store_true',
                        help='Include the extracted features in the output')

    args = parser.parse_args()

    load_dotenv()
    config = apply_environment_overrides(get_config())
    registry = ModelRegistry.from_config(config)
    scorer = ThumbnailScorer(registry, requires_faces=config.scoring.category_requires_faces)

    try:
        features = load_features(args, config)
        snapshot = registry.current()
        result = scorer.score(features, category=args.category, snapshot=snapshot)
    except (ThumbScoreError, OSError, json.JSONDecodeError) as e:
        print(json.dumps({'error': str(e), 'type': type(e).__name__}, indent=2))
        return 1

    output = {
        'scores': {**result.components(), 'overall': result.overall},
        'faceExplanation': result.face_explanation,
        'modelSource': snapshot.source,
    }
    if args.show_features:
        output['features'] = features.to_dict()
    if args.recommend:
        recommendations = RecommendationService(config.gemini).generate(features, result, snapshot)
        output['recommendations'] = [r.to_dict() for r in recommendations]

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
