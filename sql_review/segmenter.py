"""
segmenter.py

Splits a raw script into ordered Statement fragments.

A single lexer (`next_token`) classifies the script one token at a time. Its whole
state is one ScanMode value, so a string and a comment can never be open at the
same time. Three splitters are built on top of it:
  - split_sql_statements: terminator-driven split for MySQL/PostgreSQL, honoring
    `DELIMITER <token>` directives and the full-width semicolon (U+FF1B)
  - split_mongo_operations: bracket-depth split for call-shaped Mongo scripts
  - split_by_line_start: line-oriented re-split used by the terminator heuristics
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from sql_review.models import Statement

FULLWIDTH_SEMICOLON = "；"
DEFAULT_DELIMITER = ";"


class ScanMode(Enum):
    CODE = "code"
    SINGLE_QUOTE = "'"
    DOUBLE_QUOTE = '"'
    BACKTICK = "`"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"


class TokenKind(Enum):
    CODE = "code"
    QUOTED = "quoted"
    COMMENT = "comment"


QUOTE_MODES = {
    "'": ScanMode.SINGLE_QUOTE,
    '"': ScanMode.DOUBLE_QUOTE,
    "`": ScanMode.BACKTICK,
}


@dataclass(frozen=True)
class CommentSyntax:
    line_markers: Tuple[str, ...]
    block_comments: bool = True


SQL_COMMENTS = CommentSyntax(line_markers=("--", "#", "//"))
MONGO_COMMENTS = CommentSyntax(line_markers=("//",))


@dataclass(frozen=True)
class Token:
    text: str
    kind: TokenKind


def is_escaped(text: str, index: int) -> bool:
    """
    True when text[index] is preceded by an odd run of backslashes.
    """
    count = 0
    pos = index - 1
    while pos >= 0 and text[pos] == "\\":
        count += 1
        pos -= 1
    return count % 2 == 1


def next_token(mode: ScanMode, text: str, index: int, syntax: CommentSyntax) -> Tuple[ScanMode, Token]:
    """
    Consume one token starting at text[index] and return (next_mode, token).

    Comment markers and the `*/` closer are returned as whole 2-char tokens; every
    other token is a single character. The newline ending a line comment is
    returned as CODE so line-based splitters still see it.
    """
    ch = text[index]
    pair = text[index:index + 2]

    if mode is ScanMode.LINE_COMMENT:
        if ch == "\n":
            return ScanMode.CODE, Token(ch, TokenKind.CODE)
        return mode, Token(ch, TokenKind.COMMENT)

    if mode is ScanMode.BLOCK_COMMENT:
        if pair == "*/":
            return ScanMode.CODE, Token(pair, TokenKind.COMMENT)
        return mode, Token(ch, TokenKind.COMMENT)

    if mode in (ScanMode.SINGLE_QUOTE, ScanMode.DOUBLE_QUOTE, ScanMode.BACKTICK):
        if ch == mode.value and (mode is ScanMode.BACKTICK or not is_escaped(text, index)):
            return ScanMode.CODE, Token(ch, TokenKind.QUOTED)
        return mode, Token(ch, TokenKind.QUOTED)

    for marker in syntax.line_markers:
        if text.startswith(marker, index):
            return ScanMode.LINE_COMMENT, Token(marker, TokenKind.COMMENT)
    if syntax.block_comments and pair == "/*":
        return ScanMode.BLOCK_COMMENT, Token(pair, TokenKind.COMMENT)
    if ch in QUOTE_MODES and (ch == "`" or not is_escaped(text, index)):
        return QUOTE_MODES[ch], Token(ch, TokenKind.QUOTED)
    return ScanMode.CODE, Token(ch, TokenKind.CODE)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse_delimiter_directive(line: str) -> Optional[str]:
    """
    Return the new delimiter if `line` is a `DELIMITER <token>` directive, else None.
    """
    parts = line.strip().split()
    if len(parts) < 2 or parts[0].upper() != "DELIMITER":
        return None
    return parts[1] or DEFAULT_DELIMITER


class _StatementBuffer:
    """Collects characters and emits trimmed, numbered, non-empty statements."""

    def __init__(self):
        self.items: List[Statement] = []
        self._chars: List[str] = []
        self._has_content = False

    def write(self, text: str):
        self._chars.append(text)
        if not self._has_content and text.strip():
            self._has_content = True

    def has_content(self) -> bool:
        return self._has_content

    def flush(self, terminated: bool = False, fullwidth: bool = False):
        piece = "".join(self._chars).strip()
        self._chars = []
        self._has_content = False
        if not piece:
            return
        self.items.append(Statement(
            index=len(self.items) + 1,
            text=piece,
            terminated=terminated,
            fullwidth_terminator=fullwidth,
        ))


def split_sql_statements(script: str, delimiter_syntax: bool = True) -> List[Statement]:
    """
    Split a SQL script on its active terminator, skipping quoted text and comments.

    With delimiter_syntax enabled, a line holding only `DELIMITER <token>` (outside
    any string or block comment) switches the terminator for the lines that follow.
    While the terminator is `;`, a full-width `；` also ends a statement and the
    statement is flagged. Comments are dropped from statement text.
    """
    buffer = _StatementBuffer()
    mode = ScanMode.CODE
    delimiter = DEFAULT_DELIMITER
    index = 0
    length = len(script)

    while index < length:
        at_line_start = index == 0 or script[index - 1] == "\n"
        if delimiter_syntax and at_line_start and mode is ScanMode.CODE:
            line_end = script.find("\n", index)
            line_end = length if line_end == -1 else line_end
            directive = parse_delimiter_directive(script[index:line_end])
            if directive is not None:
                delimiter = directive
                index = line_end + 1
                continue

        if mode is ScanMode.CODE:
            if script.startswith(delimiter, index):
                buffer.flush(terminated=True)
                index += len(delimiter)
                continue
            if delimiter == DEFAULT_DELIMITER and script[index] == FULLWIDTH_SEMICOLON:
                buffer.flush(terminated=True, fullwidth=True)
                index += 1
                continue

        mode, token = next_token(mode, script, index, SQL_COMMENTS)
        index += len(token.text)
        if token.kind is not TokenKind.COMMENT:
            buffer.write(token.text)

    buffer.flush()
    return buffer.items


def split_mongo_operations(script: str) -> List[Statement]:
    """
    Split a call-shaped Mongo script into operations.

    An operation ends on `;`, `；` or a newline, but only while no string or comment
    is open and the paren/brace/bracket depths are all zero, so multi-line call
    arguments stay in one operation.
    """
    text = normalize_newlines(script)
    buffer = _StatementBuffer()
    mode = ScanMode.CODE
    depth = {"(": 0, "{": 0, "[": 0}
    closers = {")": "(", "}": "{", "]": "["}
    index = 0

    while index < len(text):
        mode, token = next_token(mode, text, index, MONGO_COMMENTS)
        index += len(token.text)

        if token.kind is TokenKind.COMMENT:
            continue
        if token.kind is TokenKind.QUOTED:
            buffer.write(token.text)
            continue

        ch = token.text
        top_level = not any(depth.values())
        if ch == FULLWIDTH_SEMICOLON and top_level:
            buffer.flush(terminated=True, fullwidth=True)
            continue
        if ch in depth:
            depth[ch] += 1
        elif ch in closers and depth[closers[ch]] > 0:
            depth[closers[ch]] -= 1

        top_level = not any(depth.values())
        if ch == ";" and top_level:
            buffer.flush(terminated=True)
            continue
        if ch == "\n" and top_level:
            buffer.flush()
            continue
        buffer.write(ch)

    buffer.flush()
    return buffer.items


STATEMENT_START_RE = re.compile(
    r"^\s*(SELECT|INSERT|UPDATE|DELETE|CREATE|ALTER|DROP|TRUNCATE|WITH|CALL|REPLACE|MERGE|"
    r"BEGIN|START\s+TRANSACTION|COMMIT|ROLLBACK)\b",
    flags=re.IGNORECASE | re.MULTILINE,
)
HARD_STATEMENT_START_RE = re.compile(
    r"^\s*(INSERT|UPDATE|DELETE|CREATE|ALTER|DROP|TRUNCATE|CALL|REPLACE|MERGE|"
    r"BEGIN|START\s+TRANSACTION|COMMIT|ROLLBACK)\b",
    flags=re.IGNORECASE | re.MULTILINE,
)


def split_by_line_start(script: str) -> List[Statement]:
    """
    Line-oriented re-split: a new statement starts whenever a line begins with a
    statement keyword, and a statement ends on a line ending with `;` or `；`.
    Blank lines and lines starting with a comment marker are skipped.
    """
    buffer = _StatementBuffer()
    for raw in normalize_newlines(script).split("\n"):
        line = raw.strip()
        if not line or line.startswith(SQL_COMMENTS.line_markers):
            continue

        if buffer.has_content() and STATEMENT_START_RE.match(line):
            buffer.flush()
        if buffer.has_content():
            buffer.write("\n")
        buffer.write(line)

        # "... ; -- note" still counts as terminated
        code = strip_comments_and_strings(line).rstrip()
        if code.endswith(";"):
            buffer.flush(terminated=True)
        elif code.endswith(FULLWIDTH_SEMICOLON):
            buffer.flush(terminated=True, fullwidth=True)

    buffer.flush()
    return buffer.items


def strip_comments_and_strings(text: str, syntax: CommentSyntax = SQL_COMMENTS) -> str:
    """
    Blank out quoted text (one space per character) and drop comments, keeping
    every newline so line-anchored patterns still line up.
    """
    out: List[str] = []
    mode = ScanMode.CODE
    index = 0
    while index < len(text):
        mode, token = next_token(mode, text, index, syntax)
        index += len(token.text)
        if token.kind is TokenKind.CODE:
            out.append(token.text)
        elif token.kind is TokenKind.QUOTED:
            out.append("\n" if token.text == "\n" else " ")
        elif "\n" in token.text:
            out.append("\n")
    return "".join(out)
