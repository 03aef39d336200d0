from setuptools import find_packages, setup

TEST_REQUIRES = [
    "pytest>=7.0.0",
    "pytest-asyncio>=0.23.0",
]

setup(
    name="bpt-identity-client",
    version="1.0.0",
    description="Asynchronous client library for the identity service REST API",
    author="BPT Team",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        # HTTP client dependencies
        "httpx>=0.25.0",
        # Logging dependencies
        "structlog>=23.2.0",
        "python-json-logger>=2.0.7",
        # Telemetry dependencies
        "opentelemetry-api>=1.28.0",
        # Auth dependencies
        "pyjwt>=2.8.0",
        # Config dependencies
        "pydantic>=2.10.0",
        "pydantic-settings>=2.7.0",
    ],
    extras_require={
        "test": TEST_REQUIRES,
        "dev": TEST_REQUIRES
        + [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
    ],
)
