"""
Calling Bot - Setup

Command routing and call orchestration for a meeting assistant bot.
"""

from setuptools import setup, find_packages
import os

# Read the README
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

# Read version
about = {}
with open(os.path.join(here, "callbot_core", "__init__.py"), encoding="utf-8") as f:
    exec(f.read(), about)

setup(
    name="callbot-core",
    version=about["__version__"],
    description="Command routing and call orchestration for a meeting assistant bot",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["callbot_core", "callbot_core.*"]),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.25.0",
        "structlog>=23.1.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-cov>=4.0",
            "mypy>=1.0",
            "ruff>=0.0.270",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Communications :: Telephony",
        "Topic :: Communications :: Chat",
    ],
    zip_safe=False,
)
