# -*- coding: utf-8 -*-
#
# This file is part of the photometrics project
#
# Copyright (c) 2021 Tiago Coutinho
# Distributed under the GPLv3 license. See LICENSE for more info.

"""The setup script."""

from setuptools import setup, find_packages

with open('README.md') as readme_file:
    readme = readme_file.read()

requirements = []

extras = {
    'cli': ['click>=8', 'beautifultable>=1'],
}
extras["all"] = list(set.union(*(set(i) for i in extras.values())))

test_requirements = ['pytest', 'click>=8', 'beautifultable>=1']

extras["tests"] = test_requirements

setup(
    author="Tiago Coutinho",
    author_email='coutinhotiago@gmail.com',
    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Intended Audience :: Developers',
        "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
        'Natural Language :: English',
        'Programming Language :: Python :: 3.7',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
    ],
    description="Python library to access Photometrics cameras using PVCAM",
    install_requires=requirements,
    extras_require=extras,
    license="GNU General Public License v3",
    long_description=readme,
    long_description_content_type="text/markdown",
    include_package_data=True,
    keywords=['photometrics', 'pvcam', 'camera', 'simulator'],
    name='photometrics',
    packages=find_packages(include=['photometrics']),
    test_suite='tests',
    tests_require=test_requirements,
    version='0.1.0',
    zip_safe=False,
    python_requires=">=3.7",
    entry_points={
        'console_scripts': [
            'photometrics-pvcam = photometrics.cli:main [cli]',
        ],
    }
)
