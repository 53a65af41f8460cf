[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "apptoolkit"
version = "0.1.0"
description = "Building blocks for database-backed services: per-request transactions, migration version checks, resource identifiers, health endpoints and integration-test helpers."
requires-python = ">=3.10"
dependencies = []
keywords = ["transactions", "migrations", "resource-identifiers", "health-check", "wsgi", "integration-testing"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Topic :: Database",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["apptoolkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
