from typing import List, Optional
from config.settings import ChunkingConfig, settings

class TextChunker:
    """
    Splits recipe instructions into overlapping character windows.
    - Windows end on whitespace where possible so words are never cut.
    - Each window after the first starts `overlap` chars before the previous end.
    - Empty / whitespace-only windows are dropped.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or settings.chunking

    def chunk(self, text: str, size: Optional[int] = None, overlap: Optional[int] = None) -> List[str]:
        size = self.config.chunk_size_chars if size is None else size
        overlap = self.config.chunk_overlap if overlap is None else overlap
        if size < 1:
            raise ValueError(f"chunk size must be >= 1, got {size}")
        if overlap < 0:
            raise ValueError(f"chunk overlap must be >= 0, got {overlap}")

        chunks = []
        if not text:
            return chunks

        n = len(text)
        start = 0
        while start < n:
            end = min(n, start + size)
            if end < n:
                # Backtrack to the last whitespace so the window doesn't split a word
                boundary = self._last_whitespace(text, start, end)
                if boundary > start:
                    end = boundary

            piece = text[start:end].strip()
            if piece:
                chunks.append(piece)

            if end == n:
                break

            next_start = max(end - overlap, 0)
            # overlap >= window width would never advance
            if next_start <= start:
                next_start = end
            start = next_start

        return chunks

    def _last_whitespace(self, text: str, start: int, end: int) -> int:
        """Index of the last whitespace char in text[start+1:end+1], or -1."""
        for i in range(end, start, -1):
            if text[i].isspace():
                return i
        return -1
