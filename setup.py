from setuptools import find_packages, setup

setup(
    name="stageflow",
    version="0.1.0",
    packages=find_packages(include=["stageflow", "stageflow.*"]),
    install_requires=[line for line in open("requirements-core.txt").read().splitlines() if line],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.9",
)
