"""
Setup script for cascade-feed.

Cascade is the feed engine behind an endless-scroll learning feed:

1. Interleaving - generated items with quizzes spaced 7-10 items apart
2. Adaptive Generation - single-flight refills at 75% scroll depth
3. Engagement Tracking - dwell-based viewed/avoided signals and votes

The 'cascade' command runs simulations and backend requests.
"""

from setuptools import find_packages, setup

setup(
    name="cascade-feed",
    version="1.0.0",
    description="Adaptive learning feed engine: interleaving, generation triggers and engagement tracking",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cascade=cascade.cli.feed_cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="learning feed interleaving quiz engagement",
)
