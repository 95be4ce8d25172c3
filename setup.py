from setuptools import setup, find_packages

setup(
    name="releasegate",
    version="0.1.0",
    packages=find_packages(include=["releasegate", "releasegate.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.6",
        "pydantic-settings>=2.7",
        "httpx>=0.27",
        "openai>=1.30",
    ],
    extras_require={
        "redis": ["redis>=5.0"],
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
