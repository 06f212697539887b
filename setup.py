#!/usr/bin/env python3

from setuptools import setup, find_packages

setup(
    name="momentum_scalper",
    version="1.0.0",
    description="Momentum Scalper - short-hold momentum position lifecycle engine",
    author="Momentum Trader",
    python_requires=">=3.10",
    packages=find_packages(),
    install_requires=[
        "numpy>=1.24",
        "aiohttp>=3.9",
        "python-dotenv>=1.0",
        "pytz>=2022.1",
    ],
    extras_require={
        'tests': [
            "pytest>=7.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'start-trading=momentum_scalper.start_trading:run',
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Office/Business :: Financial :: Investment",
    ],
)
