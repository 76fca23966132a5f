#!/usr/bin/env python3
"""Setup script for Brainstorm."""

from setuptools import setup, find_packages

setup(
    name="brainstorm",
    version="1.0.0",
    description="A force-directed node and edge diagram editor for GTK 4",
    author="Brainstorm Project",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "PyGObject>=3.46.0",
        "pycairo>=1.25.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "brainstorm=brainstorm.launcher:main",
        ],
        "gui_scripts": [
            "brainstorm-gui=brainstorm.launcher:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: X11 Applications :: GTK",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business",
    ],
)
