#!/usr/bin/env python3

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="edgeclient",
    version="0.1.0",
    description="Python client and examples for the Edge Core JSON-RPC gateway API",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "websockets>=13.0",
        "prompt_toolkit>=3.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "black",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "edge-pt-crypto-example=edgeclient.examples.pt_crypto:main",
            "edge-grm-example=edgeclient.examples.grm:main",
            "edge-fota-example=edgeclient.examples.fota:main",
            "edge-mgmt-example=edgeclient.examples.mgmt:main",
        ],
    },
)
