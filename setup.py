"""
TaskDesk setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="taskdesk",
    version="1.0.0",
    description="TaskDesk — Task management REST API with pluggable storage and auth",
    packages=find_packages(include=["taskdesk", "taskdesk.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "taskdesk=taskdesk.cli:main",
        ],
    },
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic>=2.5",
        "redis>=5.0",
        "cryptography>=42.0",
        "pyjwt[crypto]>=2.8",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
)
