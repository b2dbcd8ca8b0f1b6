import os
import sys

sys.path.insert(0, os.path.abspath(".."))

project = "splitlatent"
author = "splitlatent developers"
copyright = f"2025, {author}"
release = "0.1.0"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.mathjax",        # MEV and correction-factor formulas
    "sphinx.ext.intersphinx",
    "sphinx_autodoc_typehints",
    "sphinx_copybutton",
]

intersphinx_mapping = {
    "numpy": ("https://numpy.org/doc/stable/", None),
    "pandas": ("https://pandas.pydata.org/docs/", None),
    "statsmodels": ("https://www.statsmodels.org/stable/", None),
}

html_theme = "sphinx_rtd_theme"

# Private helpers (_check_*, _stage) stay out of the API pages
autodoc_default_options = {"members": True, "undoc-members": False}
autodoc_member_order = "bysource"
autodoc_typehints = "description"

napoleon_numpy_docstring = True
napoleon_google_docstring = False
napoleon_use_rtype = False
