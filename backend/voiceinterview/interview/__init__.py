from voiceinterview.interview.debouncer import TranscriptDebouncer
from voiceinterview.interview.events import InterviewEmitter
from voiceinterview.interview.history import ConversationHistory
from voiceinterview.interview.orchestrator import TurnOrchestrator
from voiceinterview.interview.safety import ChunkSizeVoiceDetector, SafetyGuard, SpeechActivityTracker, SpeechSignal
from voiceinterview.interview.violations import ViolationOutcome, ViolationTracker

__all__ = [
    "ChunkSizeVoiceDetector",
    "ConversationHistory",
    "InterviewEmitter",
    "SafetyGuard",
    "SpeechActivityTracker",
    "SpeechSignal",
    "TranscriptDebouncer",
    "TurnOrchestrator",
    "ViolationOutcome",
    "ViolationTracker",
]
