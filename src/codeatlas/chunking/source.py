"""Source text arena shared by the syntax tree and the chunks cut from it."""

from bisect import bisect_right
from dataclasses import dataclass, field

from codeatlas.chunking.languages import Language


@dataclass(frozen=True)
class SourceFile:
    """
    One file's UTF-8 content, plus the language it was detected as.

    Tree nodes and chunks refer into `content` by byte offset; nothing else
    holds a copy of the text.
    """

    path: str
    content: bytes
    language: Language
    _line_starts: list[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        starts = [0]
        index = self.content.find(b"\n")
        while index != -1:
            starts.append(index + 1)
            index = self.content.find(b"\n", index + 1)
        object.__setattr__(self, "_line_starts", starts)

    @classmethod
    def from_text(cls, path: str, text: str, language: Language) -> "SourceFile":
        return cls(path=path, content=text.encode("utf-8"), language=language)

    def __len__(self) -> int:
        return len(self.content)

    def slice(self, start: int, end: int) -> str:
        """Decode the byte range [start, end)."""
        return self.content[start:end].decode("utf-8")

    def line_of(self, offset: int) -> int:
        """1-indexed line containing the byte at `offset`."""
        return bisect_right(self._line_starts, offset)
