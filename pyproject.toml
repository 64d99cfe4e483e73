[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "svcdemo"
version = "0.1.0"
description = "Building blocks for a small set of demo services: an HTTP gateway, user and book logic, storage layers and a RabbitMQ task consumer."
requires-python = ">=3.10"
keywords = ["microservices", "flask", "rabbitmq", "sqlalchemy", "mongodb", "gateway"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Framework :: Flask",
]
dependencies = [
    "flask",
    "sqlalchemy",
    "pymongo",
    "pika",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["svcdemo"]

[tool.pytest.ini_options]
addopts = "-ra"
