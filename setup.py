from setuptools import setup, find_packages

setup(
    name="gamcoach",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*", "scripts"]),
    install_requires=[
        "pandas>=2.2.2",
        "numpy>=1.26.4",
        "tqdm>=4.67.1",
        "pyyaml>=6.0",
        "pulp>=2.8.0",
    ],
    python_requires=">=3.8",
)
