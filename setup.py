"""
Setup script for pdf-paginator project.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="pdf-paginator",
    version="0.1.0",
    packages=find_packages(include=["pdf_paginator", "pdf_paginator.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.100",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "playwright>=1.40",
        "python-dotenv",
        "beautifulsoup4",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)
