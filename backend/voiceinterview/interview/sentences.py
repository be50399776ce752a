import re

# Sentence boundary: one of .?! followed by whitespace. End-of-stream is handled by flush().
SENTENCE_END_PATTERN = re.compile(r"[.!?]+(?=\s)")
_ABBREVIATIONS = {"mr.", "mrs.", "ms.", "dr.", "prof.", "sr.", "jr.", "vs.", "etc.", "e.g.", "i.e."}


def _ends_with_abbreviation(candidate: str) -> bool:
    parts = candidate.rsplit(None, 1)
    last_word = parts[-1].lower() if parts else ""
    return last_word in _ABBREVIATIONS


class SentenceSegmenter:
    """Incrementally splits streamed LLM tokens into speakable sentences."""

    def __init__(self):
        self._buffer = ""

    def feed(self, token: str) -> list[str]:
        self._buffer += str(token or "")
        sentences: list[str] = []
        search_from = 0
        while True:
            match = SENTENCE_END_PATTERN.search(self._buffer, search_from)
            if not match:
                break
            candidate = self._buffer[:match.end()].strip()
            if _ends_with_abbreviation(candidate):
                search_from = match.end()
                continue
            if candidate:
                sentences.append(candidate)
            self._buffer = self._buffer[match.end():].lstrip()
            search_from = 0
        return sentences

    def flush(self) -> str:
        tail = self._buffer.strip()
        self._buffer = ""
        return tail


def ends_sentence(text: str) -> bool:
    return str(text or "").rstrip().endswith((".", "?", "!"))
