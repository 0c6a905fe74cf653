"""
Setup script for candidate-intake project.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="candidate-intake",
    version="0.1.0",
    packages=find_packages(include=["src", "src.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "tenacity>=8.2",
        "langchain-core>=0.3",
        "langchain-openai>=0.2",
        "python-dotenv>=1.0",
        "json-repair>=0.25",
        "requests>=2.31",
        "pymongo>=4.6",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
)
