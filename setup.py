from setuptools import setup, find_packages

setup(
    name="quizgate",
    version="0.1.0",
    packages=find_packages(include=["quizgate", "quizgate.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette",
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "sqlalchemy[asyncio]>=2.0",
        "aiosqlite",
        "asyncpg",
        "redis>=5.0",
        "httpx",
        "uvicorn",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
)
