#
# Copyright 2024 mobench Project Authors. All rights reserved.
# Use of this source code is governed by a MIT-style
# license that can be found at
#
# https://opensource.org/license/MIT
#
# The above copyright notice and this permission
# notice shall be included in all copies or
# substantial portions of the Software.

from setuptools import setup, find_packages

ALL_PROGRAM_ENTRIES = ["mobench = mobench.cli:main"]

with open("README.md", "r") as f:
    long_description = f.read()

setup(
    name="mobench",
    version="0.1.0",
    description="Build Rust benchmark crates into Android and iOS test artifacts.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["mobench", "mobench.*"]),
    include_package_data=True,
    package_data={"mobench": ["templates/**/*", "templates/**/.gitkeep"]},
    python_requires=">=3.9",
    install_requires=[
        "copier>=9.2.0",
        'tomli>=2.0.0; python_version < "3.11"',
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: Implementation :: CPython",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS :: MacOS X",
    ],
    zip_safe=False,
    entry_points={"console_scripts": ALL_PROGRAM_ENTRIES},
)
