"""Pegasus static blog pipeline.

This package builds a static blog from Markdown documents with YAML front-matter
and publishes the result to a hosting target such as a ``gh-pages`` branch.

A run has three sequential steps, each owned by one module:
- checkout: acquire the repository contents (checkout.py)
- generate: render the site with the builtin generator or an external command (generators.py)
- deploy: replace the publish target with the generated tree (publishers.py)

The pipeline module ties the steps together and the CLI module exposes them.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
