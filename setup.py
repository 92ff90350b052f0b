# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
import os.path
from setuptools import setup, find_packages

description = ('A package for turning C headers into a structured model of their API: '
               'typedefs, records, enums, functions and macros')
classifiers = [
    'License :: OSI Approved :: GNU General Public License v3 (GPLv3)',
    'Programming Language :: Python :: 3',
]

# Load metadata from __about__.py
base_dir = os.path.dirname(__file__)
readme_path = os.path.join(base_dir, 'README.rst')
about_path = os.path.join(base_dir, 'niceheader', '__about__.py')
about = {}
with open(about_path) as f:
    exec(f.read(), about)

install_requires = [
    'cffi>=1.5',
    'pycparser>=2.19,<3',
]


if __name__ == '__main__':
    setup(
        name = about['__distname__'],
        version = about['__version__'],
        packages = find_packages(exclude=['tests', 'tests.*']),
        author = about['__author__'],
        author_email = about['__email__'],
        description = description,
        long_description = '\n'.join(open(readme_path).read().splitlines()[2:]),
        license = about['__license__'],
        classifiers = classifiers,
        python_requires = '>=3.5',
        install_requires = install_requires,
        extras_require = {'test': ['pytest']},
    )
