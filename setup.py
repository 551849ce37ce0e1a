#! /usr/bin/env python

DISTNAME = 'lmesim'
DESCRIPTION = 'lmesim: simulated fMRI time series and mixed-effects recovery'
MAINTAINER = 'lmesim developers'
LICENSE = 'BSD (3-clause)'
VERSION = '0.1.0'
PYTHON_REQUIRES = ">=3.7"
INSTALL_REQUIRES = [
    'numpy',
    'scipy',
    'pandas',
    'pyyaml',
    'traits',
    'statsmodels',
    'patsy',
]
EXTRAS_REQUIRE = {
    'test': ['pytest'],
}
PACKAGES = [
    'lmesim',
    'lmesim.tests',
]
SCRIPTS = [
    'scripts/lmesim',
]
CLASSIFIERS = [
    'Intended Audience :: Science/Research',
    'Programming Language :: Python :: 3',
    'License :: OSI Approved :: BSD License',
    'Operating System :: POSIX',
    'Operating System :: Unix',
    'Operating System :: MacOS',
]


if __name__ == '__main__':

    from setuptools import setup

    setup(
        name=DISTNAME,
        maintainer=MAINTAINER,
        description=DESCRIPTION,
        license=LICENSE,
        version=VERSION,
        python_requires=PYTHON_REQUIRES,
        install_requires=INSTALL_REQUIRES,
        extras_require=EXTRAS_REQUIRE,
        packages=PACKAGES,
        scripts=SCRIPTS,
        classifiers=CLASSIFIERS,
    )
