"""
Novamanga
=========

Auto-reading manga reader: extracts page images from a .cbz/.zip archive,
transcribes speech bubbles with a Large Multimodal Model in small batches,
and reads the pages aloud with text-to-speech, advancing automatically.
"""

__version__ = "0.1.0"

from .data_models import Page, ReaderState

# Avoid pulling in the model and audio SDKs until they are needed
def get_playback_controller():
    from .controller import PlaybackController
    return PlaybackController

def get_batch_analyzer():
    from .analyzer import BatchAnalyzer
    return BatchAnalyzer

__all__ = ["get_playback_controller", "get_batch_analyzer", "Page", "ReaderState"]
