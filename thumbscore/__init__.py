"""
ThumbScore
==========
Thumbnail scoring engine and the corpus trainer that builds its model.
"""

__version__ = "1.0.0"
