# setup.py
from setuptools import setup, find_packages

setup(
    name="cashbook",
    version="0.1.0",
    description="A single-organisation cash ledger with multi-sheet spreadsheet reports",
    packages=find_packages(include=["cashbook", "cashbook.*"]),
    python_requires=">=3.9",
    install_requires=[
        "click>=7.0",
        "pyyaml>=5.3",
        "xlsxwriter>=3.0",
        "python-dotenv>=0.19",
        "simplejson>=3.17",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "openpyxl>=3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cashbook=cashbook.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
