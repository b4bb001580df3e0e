"""kbdrops: personal knowledge base. Ingest, chunk, embed, query."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kbdrops")
except PackageNotFoundError:  # running from a source checkout
    __version__ = "0.0.0.dev0"
