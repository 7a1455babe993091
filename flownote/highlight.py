"""
Syntax highlighting of document lines for the terminal.
"""

from rich.highlighter import RegexHighlighter
from rich.text import Text
from rich.theme import Theme

from flownote.parser import LineType, parse_line


class FlowNoteHighlighter(RegexHighlighter):
    """Highlights numbers, strings, operators, calls and names in code lines."""

    base_style = "flownote."
    highlights = [
        r"(?P<paren>[()\[\]{}])",
        r"(?P<punctuation>,)",
        r"(?P<variable>[a-zA-Z_$][a-zA-Z0-9_$.]*)",
        r"(?P<function>[a-zA-Z_$][a-zA-Z0-9_$]*)(?=\s*\()",
        r"(?P<operator>[+\-*/%^=<>!&|?:]+)",
        r"(?<![a-zA-Z0-9_$.])(?P<number>\d+\.?\d*(?:[eE][+-]?\d+)?)",
        r"(?P<string>\"[^\"]*\"|'[^']*')",
    ]


THEME = Theme({
    "flownote.comment": "dim italic",
    "flownote.string": "green",
    "flownote.number": "bold cyan",
    "flownote.operator": "yellow",
    "flownote.function": "bold magenta",
    "flownote.variable": "bright_white",
    "flownote.paren": "dim",
    "flownote.punctuation": "dim",
    "flownote.text": "white",
})

_highlighter = FlowNoteHighlighter()


def highlight_line(line: str) -> Text:
    """
    Render one document line with syntax colouring.

    Comments are dimmed as a whole, prose is left plain, code lines are
    coloured token by token.
    """
    parsed = parse_line(line)
    if parsed.type == LineType.COMMENT:
        return Text(line, style="flownote.comment")
    if parsed.type == LineType.TEXT:
        return Text(line, style="flownote.text")
    return _highlighter(line)
