from setuptools import setup, find_packages
from pathlib import Path

package_name = 'strimzi-client-provisioner'
description = (
    'Kafka client configuration and TLS/SCRAM credentials for test clients '
    'of a Strimzi-based Kafka cluster.'
)
author = 'Association of Universities for Research in Astronomy'
author_email = 'sqre-admin@lists.lsst.org'
license = 'MIT'
pypi_classifiers = [
    'Development Status :: 4 - Beta',
    'License :: OSI Approved :: MIT License',
    'Programming Language :: Python :: 3.10'
]
keywords = ['lsst', 'kafka', 'strimzi']
readme = Path(__file__).parent / 'README.rst'

# Core dependencies
install_requires = [
    'cryptography>=39',
    'kopf>=1.35',
    'kubernetes>=28.1.0',
    'structlog>=23.1.0',
]

# Test dependencies
tests_require = [
    'pytest>=7.4',
    'pyyaml>=6.0',
]
tests_require += install_requires

# Optional dependencies (like for dev)
extras_require = {
    'test': tests_require,
    # For development environments
    'dev': tests_require,
}

setup(
    name=package_name,
    version='0.1.0',
    description=description,
    long_description=readme.read_text(),
    author=author,
    author_email=author_email,
    license=license,
    classifiers=pypi_classifiers,
    keywords=keywords,
    python_requires='>=3.10',
    package_dir={'': 'src'},
    packages=find_packages('src'),
    install_requires=install_requires,
    extras_require=extras_require,
    include_package_data=True
)
