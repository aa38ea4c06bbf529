from setuptools import setup, find_packages

setup(
    name="tpmr-python",
    version="0.1.0",
    description="Tissue-partitioned Mendelian randomization: tissue-specific causal effects from colocalisation-weighted genetic instruments",
    license="GPL",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.21",
        "pandas>=1.3",
        "scipy>=1.6",
        "statsmodels>=0.13",
        "scikit-learn>=1.0",
        "tqdm>=4.60",
        "plotnine>=0.12",
        "psutil>=5.8",
        "tables>=3.7",
        "pyarrow>=8.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
