"""
Setup script for drill2anki.

drill2anki moves org-drill flashcards into Anki. It serves three roles:

1. Converter - Rewrites org-drill entries as anki-editor notes
2. Pusher - Sends the notes to Anki through AnkiConnect
3. History carrier - Replays org-drill review history onto the new cards

The 'drill2anki' command is the only entry point.
"""

from setuptools import find_packages, setup

setup(
    name="drill2anki",
    version="1.0.0",
    description="Convert org-drill flashcards to anki-editor notes and carry their review history to Anki",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="drill2anki contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "requests>=2.28.0",
        "urllib3>=1.26.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "drill2anki=drill2anki.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
        "Topic :: Text Processing :: Markup",
    ],
    keywords="org-mode org-drill anki anki-editor spaced-repetition flashcards cli",
)
