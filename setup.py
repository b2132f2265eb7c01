from setuptools import setup, find_packages

setup(
    name="chunkscribe",
    version="0.1.0",
    description="Chunked recording-session ingestion, gap detection and transcript export",
    author="",
    python_requires=">=3.8",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "rich>=12.5.0",
        "click>=8.1.0",
        "pydantic>=2.0.0",
        "pyyaml>=6.0.0",
        "pypubsub>=4.0.3",
        "aiohttp>=3.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-aiohttp>=1.0.4",
        ],
    },
    entry_points={
        "console_scripts": [
            "chunkscribe=chunkscribe.main:main",
        ],
    },
)
