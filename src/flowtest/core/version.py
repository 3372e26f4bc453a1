from importlib import metadata

try:
    FLOWTEST_VERSION = metadata.version("flowtest")
except metadata.PackageNotFoundError:
    # Local run without installation
    FLOWTEST_VERSION = "dev"
