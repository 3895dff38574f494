[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blepairing"
version = "0.1.0"
description = "Bluetooth Low Energy security manager pairing, L2CAP signaling and HCI transports"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["bluetooth", "ble", "pairing", "l2cap", "hci", "aes-cmac", "security-manager"]
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
    "Topic :: Communications",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["blepairing"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
