#!/usr/bin/env python
"""
Setup script for sysmodel

Kept only for pip versions and build tools that predate PEP 621; the
project metadata, dependencies and package discovery live in
pyproject.toml.
"""

from setuptools import setup

if __name__ == "__main__":
    setup()
