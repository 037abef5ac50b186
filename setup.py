"""
Setup script for rover-cosim package.

This package couples a rigid multibody rover with a granular terrain solver
in a staggered fixed-step co-simulation.
"""

from setuptools import setup, find_packages
import os

# Read long description from README
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read requirements
with open(os.path.join(here, 'requirements.txt'), encoding='utf-8') as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Split core requirements from dev dependencies
core_requirements = []
dev_requirements = []

for req in requirements:
    if any(dev_pkg in req for dev_pkg in ['pytest', 'black', 'flake8', 'mypy', 'sphinx']):
        dev_requirements.append(req)
    else:
        core_requirements.append(req)

setup(
    name='rover-cosim',
    version='1.0.0',
    description='Rover / granular terrain co-simulation',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Rover Co-Simulation Team',

    packages=find_packages(where='src'),
    package_dir={'': 'src'},

    # Core dependencies
    install_requires=core_requirements,

    # Optional dependencies
    extras_require={
        'dev': dev_requirements,
        'test': dev_requirements,
    },

    # Python version requirement
    python_requires='>=3.8',

    # Entry points for command line usage
    entry_points={
        'console_scripts': [
            'rover-cosim=rover_cosim.cli:main',
        ],
    },

    # Classifiers for PyPI
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Physics',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Operating System :: OS Independent',
    ],

    # Keywords for searchability
    keywords='co-simulation rover granular-terrain dem multibody',
)
