# Path: vibefilter/__init__.py
# Purpose: Package initializer for the vibefilter ranking and tagging engine.
# Layer: vibefilter.
# Details: Aggregates subpackages for vectors, concepts, expansion, tagging, hubs, ranking, and storage.

__version__ = "0.1.0"
