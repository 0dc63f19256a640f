# lexer.py
"""
Single-pass SQL scanner used for editor highlighting.

tokenize() never raises: malformed input (unterminated strings or block
comments) is classified up to the end of the text. Text that is not a
keyword, function call, literal, comment or operator is left out of the
token stream; highlighter.build_spans() fills it in as plain text.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class TokenKind(str, Enum):
    KEYWORD = "keyword"
    FUNCTION = "function"
    STRING = "string"
    NUMBER = "number"
    COMMENT = "comment"
    OPERATOR = "operator"
    PLAIN = "plain"

    @property
    def style_class(self) -> str:
        return "" if self is TokenKind.PLAIN else f"sql-{self.value}"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def text(self, source: str) -> str:
        return source[self.start:self.end]


KEYWORDS = frozenset("""
    SELECT FROM WHERE INSERT UPDATE DELETE CREATE ALTER DROP
    TABLE DATABASE INDEX VIEW TRIGGER PROCEDURE FUNCTION
    JOIN INNER LEFT RIGHT OUTER ON AS AND OR NOT
    IN EXISTS BETWEEN LIKE IS NULL ORDER BY GROUP
    HAVING LIMIT OFFSET UNION ALL DISTINCT TOP CASE
    WHEN THEN ELSE END IF WHILE FOR LOOP BEGIN
    COMMIT ROLLBACK SAVEPOINT GRANT REVOKE PRIVILEGES
    INT VARCHAR CHAR TEXT DECIMAL FLOAT DOUBLE DATE
    TIME DATETIME TIMESTAMP BOOLEAN BLOB CLOB JSON
    PRIMARY KEY FOREIGN REFERENCES UNIQUE CHECK DEFAULT
    AUTO_INCREMENT IDENTITY SEQUENCE CONSTRAINT
    ASC DESC COUNT SUM AVG MIN MAX FIRST LAST
    ROW_NUMBER RANK DENSE_RANK LEAD LAG OVER PARTITION
    WINDOW ROWS RANGE UNBOUNDED PRECEDING FOLLOWING CURRENT
""".split())

FUNCTIONS = frozenset("""
    ABS ACOS ASIN ATAN ATAN2 CEIL COS COT DEGREES
    EXP FLOOR LOG LOG10 MOD PI POWER RADIANS RAND
    ROUND SIGN SIN SQRT TAN TRUNCATE ASCII CHAR
    CHAR_LENGTH CONCAT CONCAT_WS ELT FIELD FIND_IN_SET
    FORMAT INSERT INSTR LCASE LEFT LENGTH LOCATE LOWER
    LPAD LTRIM MID POSITION REPEAT REPLACE REVERSE
    RIGHT RPAD RTRIM SPACE STRCMP SUBSTRING SUBSTRING_INDEX
    TRIM UCASE UPPER ADDDATE ADDTIME CONVERT_TZ CURDATE
    CURRENT_DATE CURRENT_TIME CURRENT_TIMESTAMP CURTIME DATE
    DATE_ADD DATE_FORMAT DATE_SUB DATEDIFF DAY DAYNAME
    DAYOFMONTH DAYOFWEEK DAYOFYEAR EXTRACT FROM_DAYS FROM_UNIXTIME
    GET_FORMAT HOUR LAST_DAY LOCALTIME LOCALTIMESTAMP MAKEDATE
    MAKETIME MICROSECOND MINUTE MONTH MONTHNAME NOW PERIOD_ADD
    PERIOD_DIFF QUARTER SECOND SEC_TO_TIME STR_TO_DATE SUBDATE
    SUBTIME SYSDATE TIME TIME_FORMAT TIME_TO_SEC TIMEDIFF
    TIMESTAMP TIMESTAMPADD TIMESTAMPDIFF TO_DAYS TO_SECONDS
    UNIX_TIMESTAMP UTC_DATE UTC_TIME UTC_TIMESTAMP WEEK WEEKDAY
    WEEKOFYEAR YEAR YEARWEEK
""".split())

COMPARISON_CHARS = frozenset("=<>!")
ARITHMETIC_CHARS = frozenset("+-*/%")
LINE_BREAKS = "\r\n"


# -------------------------
# Character classes
# -------------------------
def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _word_end(text: str, pos: int) -> int:
    end = pos
    while end < len(text) and _is_word_char(text[end]):
        end += 1
    return end


# -------------------------
# Scanners: each returns the end offset of a match at `pos`, or None
# -------------------------
def _scan_function_call(text: str, word_end: int) -> Optional[int]:
    i = word_end
    while i < len(text) and text[i].isspace():
        i += 1
    if i < len(text) and text[i] == "(":
        return i + 1
    return None


def _scan_string(text: str, pos: int) -> int:
    i = pos + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "'":
            return i + 1
        i += 1
    return len(text)


def _scan_number(text: str, pos: int, word_end: int) -> Optional[int]:
    """Digits with an optional fraction; the whole word must be numeric."""
    i = pos
    while i < word_end and _is_digit(text[i]):
        i += 1
    if i != word_end:
        return None
    if i + 1 < len(text) and text[i] == "." and _is_digit(text[i + 1]):
        frac_end = _word_end(text, i + 1)
        j = i + 1
        while j < frac_end and _is_digit(text[j]):
            j += 1
        if j == frac_end:
            return j
    return i


def _scan_comment(text: str, pos: int) -> Optional[int]:
    if text.startswith("--", pos):
        i = pos + 2
        while i < len(text) and text[i] not in LINE_BREAKS:
            i += 1
        return i
    if text.startswith("/*", pos):
        close = text.find("*/", pos + 2)
        return len(text) if close == -1 else close + 2
    return None


def _scan_operator(text: str, pos: int) -> Optional[int]:
    ch = text[pos]
    if ch in COMPARISON_CHARS:
        i = pos + 1
        while i < len(text) and text[i] in COMPARISON_CHARS:
            i += 1
        return i
    if ch in ARITHMETIC_CHARS:
        return pos + 1
    return None


# -------------------------
# Public API
# -------------------------
def tokenize(text: str) -> List[Token]:
    """
    Scan `text` left to right into classified, non-overlapping tokens.

    At each position the classes are tried in a fixed order: keyword,
    function call, string, number, comment, operator. Words are consumed
    whole, so a keyword is only recognised when it is bounded by
    non-identifier characters on both sides.
    """
    tokens: List[Token] = []
    pos = 0
    n = len(text)

    while pos < n:
        ch = text[pos]

        if _is_word_char(ch):
            word_end = _word_end(text, pos)
            raw = text[pos:word_end]
            # vocabulary is ASCII only
            word = raw.upper() if raw.isascii() else ""

            if word in KEYWORDS:
                tokens.append(Token(TokenKind.KEYWORD, pos, word_end))
                pos = word_end
                continue

            if word in FUNCTIONS:
                call_end = _scan_function_call(text, word_end)
                if call_end is not None:
                    tokens.append(Token(TokenKind.FUNCTION, pos, call_end))
                    pos = call_end
                    continue

            if _is_digit(ch):
                number_end = _scan_number(text, pos, word_end)
                if number_end is not None:
                    tokens.append(Token(TokenKind.NUMBER, pos, number_end))
                    pos = number_end
                    continue

            # identifier or unknown word: plain, skipped whole
            pos = word_end
            continue

        if ch == "'":
            end = _scan_string(text, pos)
            tokens.append(Token(TokenKind.STRING, pos, min(end, n)))
            pos = min(end, n)
            continue

        end = _scan_comment(text, pos)
        if end is not None:
            tokens.append(Token(TokenKind.COMMENT, pos, end))
            pos = end
            continue

        end = _scan_operator(text, pos)
        if end is not None:
            tokens.append(Token(TokenKind.OPERATOR, pos, end))
            pos = end
            continue

        pos += 1

    return tokens
