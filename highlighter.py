# highlighter.py
import html
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from lexer import Token, TokenKind, tokenize


@dataclass(frozen=True)
class StyleSpan:
    start: int
    end: int
    kind: TokenKind = TokenKind.PLAIN

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def style_class(self) -> str:
        return self.kind.style_class

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "kind": self.kind.value,
            "style": self.style_class or None,
        }


HIGHLIGHT_CSS = """\
.sql-keyword {
    color: #0000FF;
    font-weight: bold;
}
.sql-function {
    color: #800080;
    font-weight: bold;
}
.sql-string {
    color: #008000;
}
.sql-number {
    color: #FF0000;
}
.sql-comment {
    color: #808080;
    font-style: italic;
}
.sql-operator {
    color: #FF8000;
    font-weight: bold;
}
"""


def build_spans(text: str, tokens: Sequence[Token]) -> List[StyleSpan]:
    """
    Turn a sorted, non-overlapping token list into a gap-free partition of
    `text`. Uncovered stretches become PLAIN spans; empty text gives [].
    """
    spans: List[StyleSpan] = []
    last_end = 0
    for tok in tokens:
        if tok.start > last_end:
            spans.append(StyleSpan(last_end, tok.start))
        spans.append(StyleSpan(tok.start, tok.end, tok.kind))
        last_end = tok.end
    if last_end < len(text):
        spans.append(StyleSpan(last_end, len(text)))
    return spans


def highlight(text: Optional[str]) -> List[StyleSpan]:
    return build_spans(text or "", tokenize(text or ""))


def render_html(text: Optional[str], spans: Optional[Sequence[StyleSpan]] = None) -> str:
    """Render `text` as escaped HTML with one <span class=...> per styled span."""
    text = text or ""
    if spans is None:
        spans = highlight(text)
    parts: List[str] = []
    for span in spans:
        chunk = html.escape(text[span.start:span.end])
        if span.style_class:
            parts.append(f'<span class="{span.style_class}">{chunk}</span>')
        else:
            parts.append(chunk)
    return "".join(parts)
