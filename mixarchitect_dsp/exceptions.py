"""Error taxonomy for the analysis pipeline.

Header parsing and loudness measurement never raise for signal or byte
layout reasons, so everything here belongs to the collaborator boundary
(fetch, decode) or to cancellation.
"""


class AnalysisError(Exception):
    """Base class for analysis pipeline errors."""


class AnalysisCancelled(AnalysisError):
    """The caller aborted the run (e.g. switched to another audio version)."""


class AnalysisFailed(AnalysisError):
    """Fetching or decoding the asset failed; no metadata was written."""


class FetchError(AnalysisFailed):
    pass


class DecodeError(AnalysisFailed):
    pass
