# Sphinx configuration for the triage-orchestrator API reference.

import os
import sys

sys.path.insert(0, os.path.abspath('../src'))

from triage_orchestrator import __version__  # noqa: E402

project = 'Triage Orchestrator'
author = 'Triage Orchestrator contributors'
copyright = '2026, Triage Orchestrator contributors'
release = __version__
version = '.'.join(__version__.split('.')[:2])

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx.ext.intersphinx',
    'sphinx_autodoc_typehints',
]

exclude_patterns = ['_build']
html_theme = 'sphinx_rtd_theme'

# The llama extra is optional; don't require it to build the docs.
autodoc_mock_imports = ['llama_cpp']
autodoc_default_options = {
    'members': True,
    'member-order': 'bysource',
    'undoc-members': True,
    'exclude-members': '__weakref__',
}
napoleon_google_docstring = True
napoleon_numpy_docstring = False

intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'pydantic': ('https://docs.pydantic.dev/latest', None),
}
