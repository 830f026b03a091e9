[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "orderdesk"
version = "0.1.0"
description = "Order management HTTP service backed by a SQL database, with Redis caching, event publishing and search indexing"
requires-python = ">=3.10"
keywords = ["orders", "http", "service", "postgresql", "redis", "cache", "resilience"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: FastAPI",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "python-dotenv>=1.0",
    "sqlalchemy>=2.0",
    "redis>=5.0",
    "httpx>=0.25",
    "fastapi>=0.100",
    "uvicorn>=0.23",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "httpx>=0.25",
]

[project.scripts]
orderdesk = "orderdesk.app:main"

[tool.hatch.build.targets.wheel]
packages = ["orderdesk"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
