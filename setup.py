# setup.py
from setuptools import setup, find_packages

setup(
    name="pcl_decoder",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        "pcl_decoder": ["config/*.yaml"],
    },
    install_requires=[
        "numpy",
        "pyyaml"
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-cov'
        ],
    }
)
