[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tailcontrol"
version = "0.1.0"
description = "ACL policy loading and alias expansion, SSH rule generation, OIDC login checks and Noise early payloads for a mesh VPN control server"
requires-python = ">=3.10"
keywords = ["acl", "policy", "vpn", "mesh", "oidc", "ssh", "hujson"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tailcontrol"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
