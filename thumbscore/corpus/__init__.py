"""
Corpus Analysis Package
=======================
Offline trainer that samples popular videos, analyses their thumbnails
and derives the scoring model and findings artifacts.

Submodules are imported directly (e.g. ``from thumbscore.corpus.pipeline
import CorpusTrainer``); the scoring engine only depends on ``color``.
"""
