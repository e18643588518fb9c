"""docflow: phase orchestration and cross-artifact validation for document pipelines."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("docflow")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
