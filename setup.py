"""
Setup for the workshop_core package.
This makes 'workshop_core' an installable Python package.
"""
from setuptools import setup, find_packages

setup(
    name="workshop-core",
    version="1.0.0",
    packages=find_packages(include=["workshop_core", "workshop_core.*"]),
    package_data={"workshop_core": ["requirements.txt"]},
    install_requires=[
        line.strip()
        for line in open('workshop_core/requirements.txt')
        if line.strip() and not line.startswith('#')
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "httpx>=0.26.0",
            "fakeredis[lua]>=2.21.0",
        ],
    },
    python_requires=">=3.9",
)
