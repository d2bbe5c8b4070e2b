"""Main setup file for config-mirror

The project metadata lives in pyproject.toml. This file is only required for running:
``pip install -e .``

:Module: setup
:Author: Mike Grima <michael.grima@gemini.com>
"""
from setuptools import setup

setup()
