# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import os
import sys

# -- Path setup --------------------------------------------------------------
sys.path.insert(0, os.path.abspath("../.."))

# -- Project information -----------------------------------------------------
project = "rangesplit"
copyright = "2026, rangesplit contributors"
author = "rangesplit contributors"

# -- General configuration ---------------------------------------------------
extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.intersphinx",
    "sphinxcontrib.mermaid",
    "sphinx_immaterial",
]

# -- Options for HTML output -------------------------------------------------
html_theme = "sphinx_immaterial"
html_theme_options = {
    "font": False,
    "features": ["search.highlight", "toc.follow"],
}

# -- Extension configuration -------------------------------------------------

# Google style docstrings only.
napoleon_numpy_docstring = False

# Splitters and exceptions are documented in source order.
autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
}
autodoc_typehints = "description"

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "sqlalchemy": ("https://docs.sqlalchemy.org/en/20/", None),
    "pydantic": ("https://docs.pydantic.dev/latest/", None),
}
