from setuptools import setup, find_packages

setup(
    name="source-console",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "click>=8.2.0",
        "httpx>=0.28.1",
        "psycopg[binary]>=3.2.0",
        "psycopg-pool>=3.2.0",
        "pydantic>=2.11.4",
        "pydantic-settings>=2.9.0",
        "python-dotenv>=1.1.0",
        "rich>=14.0.0",
        "structlog>=25.1.0",
        "fastapi>=0.115.0",
        "uvicorn>=0.34.0",
        "python-jose[cryptography]>=3.4.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.3.0",
            "pytest-asyncio>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "source-console=source_console.cli:main",
        ],
    },
)
