[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "splitflap"
version = "0.1.0"
description = "Control split-flap character displays driven by stepper motors behind PCF8575 I2C expanders"
requires-python = ">=3.10"
dependencies = []
keywords = ["split-flap", "display", "stepper", "i2c", "pcf8575", "hall-effect"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Home Automation",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["splitflap"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
