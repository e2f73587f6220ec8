import os
from setuptools import setup, find_packages

this_directory = os.path.abspath(os.path.dirname(__file__))
try:
    with open(os.path.join(this_directory, "README.md"), encoding="utf-8") as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = "Policy-driven XSS sanitization for text and structured data"

setup(
    name="sanitas",
    version="0.1.0",
    description="Policy-driven XSS sanitization engine, HTTP service and client",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "bleach>=6.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "PyYAML>=6.0",
        "fastapi>=0.100",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Security",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.9",
)
