from .base import SourceSpec, TranscriptRecord
from .local_jsonl import LocalJSONLSource

__all__ = ["SourceSpec", "TranscriptRecord", "LocalJSONLSource"]
