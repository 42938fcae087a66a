"""Setup configuration for the Nazer Telegram quarantine bot."""

from setuptools import setup, find_packages

setup(
    name="nazer",
    version="0.0.1",
    description="A Telegram bot that confines quarantined users to a single group",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "python-telegram-bot>=21.1",
        "aiosqlite>=0.19",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0,<9",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "nazer=nazer.main:main",
        ],
    },
)
