from setuptools import setup, find_packages

setup(
    name="ca_reco",
    version="0.1.0",
    description="Cellular-automaton track finding on a layered segment network",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.10",
    install_requires=[
        # Runtime dependencies
        "numpy",
        "pandas",
        "scipy",
        "networkx",
        "matplotlib",
        "orjson",
    ],
    extras_require={
        # Developer extras
        "dev": [
            "pytest",
            "black",
            "mypy",
        ],
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            # CLI entry point for running main.py
            "ca-reco=ca_reco.main:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
