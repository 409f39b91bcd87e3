from setuptools import setup, find_packages

setup(
    name="shipit-backend",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*", "migrations", "migrations.*"]),
    install_requires=[
        "fastapi>=0.104.1",
        "uvicorn>=0.24.0",
        "sqlalchemy>=2.0.23",
        "alembic>=1.13.1",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "python-dotenv>=1.0.0",
        "kubernetes>=28.1.0",
        "urllib3>=1.26",
        "pyyaml>=6.0",
        "cryptography>=41.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.3",
            "httpx>=0.25.2",
        ],
    },
    python_requires=">=3.11",
)
