[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dccnet"
version = "0.1.0"
description = "A UDP token-authentication client and a framed, acknowledged link layer over TCP"
requires-python = ">=3.10"
dependencies = []
keywords = ["networking", "link-layer", "framing", "checksum", "udp", "tcp", "authentication", "md5"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dccnet-auth = "dccnet.auth_cli:main"
dccnet-md5 = "dccnet.cli:md5_main"
dccnet-xfer = "dccnet.cli:xfer_main"

[tool.hatch.build.targets.wheel]
packages = ["dccnet"]

[tool.pytest.ini_options]
addopts = "-ra"
