"""Per-source-type content extraction: tweet, video, pdf, article, text."""

from kbdrops.extract.base import Extracted
from kbdrops.extract.extractor import Extractor
from kbdrops.extract.fetch import FetchResult, SsrfError, fetch

__all__ = ["Extracted", "Extractor", "FetchResult", "SsrfError", "fetch"]
