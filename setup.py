"""
Setup script for adaptive-assessment.

Adaptive assessment is a closed-loop testing engine:

1. Generator - builds assessments biased toward a learner's weak topics
2. Attempts - start, grade and finalize learner submissions
3. Feedback - folds each result back into the learner's proficiency context

The 'assess' command is the CLI entry point; the REST API runs via main.py.
"""

from setuptools import find_packages, setup

setup(
    name="adaptive-assessment",
    version="1.0.0",
    description="Closed-loop adaptive assessment engine with proficiency tracking",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["adaptive_assessment", "adaptive_assessment.*"]),
    py_modules=["config", "main"],
    python_requires=">=3.11",
    install_requires=[
        # API
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
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
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "assess=adaptive_assessment.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="assessment adaptive-testing education proficiency",
)
