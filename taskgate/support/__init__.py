"""
Support layer for shared workflow utilities.

Provides context directory path resolution and YAML configuration loading
used across the CLI, store and pipeline modules.
"""
