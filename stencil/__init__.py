"""Stencil: a blueprint-driven project generator.

A blueprint bundles typed variables, conditional template files, dependency
declarations and post-generation hooks.  Stencil resolves the variables,
renders the selected files and materializes a complete project tree.
"""

__version__ = "0.3.0"
