from setuptools import setup, find_packages

setup(
    name="inbox_reconciler",
    version="0.1.0",
    packages=find_packages(include=["inbox", "inbox.*", "activity", "activity.*", "host", "host.*"]),
    install_requires=[
        "python-socketio",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "aiohttp",
        "opentelemetry-api",
        "opentelemetry-sdk",
        "opentelemetry-exporter-otlp-proto-http",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "inbox-host=host.main:main",
        ],
    },
    python_requires=">=3.8",
)
