"""Build and install the flightlog package."""

from setuptools import setup, find_packages

setup(
    name="flightlog",
    version="0.1.0",
    description="Flight computer telemetry log decoder and tooling",
    python_requires=">=3.9",
    package_dir={"": "python"},
    packages=find_packages("python"),
    install_requires=[
        "numpy",
    ],
    extras_require={
        "serial": ["pyserial"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "flightlog = flightlog.cli:main",
        ],
    },
)
