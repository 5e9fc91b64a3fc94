"""Setup configuration for Modstream, an LLM-driven Twitch chat moderator."""

from setuptools import setup, find_packages

setup(
    name="modstream",
    version="0.1.0",
    description="Twitch chat moderation driven by LLM tool calls",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.12",
    install_requires=[
        "openai>=1.40",
        "aiosqlite>=0.19",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
        "jsonschema>=4.0",
        "requests>=2.31",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "modstream=modstream.main:main",
        ],
    },
)
