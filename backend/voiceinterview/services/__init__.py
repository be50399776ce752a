from voiceinterview.services.deepgram_service import DeepgramStream
from voiceinterview.services.llm_service import LanguageModelService
from voiceinterview.services.stt_streams import SpeechStreamRegistry
from voiceinterview.services.tts_service import EdgeSpeechSynthesizer

__all__ = ["DeepgramStream", "EdgeSpeechSynthesizer", "LanguageModelService", "SpeechStreamRegistry"]
