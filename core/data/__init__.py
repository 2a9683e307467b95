"""
core/data — Bundled YAML configuration tables.

Loaded through core/_data_loader.py via importlib.resources.
"""
