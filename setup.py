from setuptools import setup, find_packages

setup(
    name="faers_extract",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pandas",
        "numpy",
        "tqdm",
        "dask[dataframe]",
        "pyarrow",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "faers-extract=faers_extract.cli:main",
        ],
    },
    python_requires=">=3.9",
)
