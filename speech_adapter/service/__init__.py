from .deprecated import deprecated_alias
from .speech_to_text_service import SpeechToTextService

__all__ = ["SpeechToTextService", "deprecated_alias"]
