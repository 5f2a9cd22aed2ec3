"""
MySQL MAX_EXECUTION_TIME hint injection.

`inject()` places a `MAX_EXECUTION_TIME(<ms>)` optimizer hint right after the
first SELECT keyword of a statement, merging it into an existing `/*+ ... */`
hint comment when there is one. It is a lexical scan, not a parser: it walks
whitespace-separated tokens from the left, skipping comments, and gives up as
soon as it sees anything that tells it where (or whether) to insert.
"""

from __future__ import annotations

import re

_TOKEN = re.compile(r"(\S+)\s+", re.ASCII)
_LINE_BREAK = re.compile(r"\r\n|\n|\r")
_BLOCK_END = re.compile(r"\*/\s*", re.ASCII)
_HINT_END = re.compile(r"(\S*)(\s*)\*/", re.ASCII)
_WORD = re.compile(r"\w+", re.ASCII)
_SPACE = re.compile(r"\s+", re.ASCII)


def inject(sql: str, max_execution_time_ms: int) -> str:
    """
    Return `sql` with a MAX_EXECUTION_TIME hint if it is a SELECT statement.

        >>> inject("SELECT * FROM users", 3)
        'SELECT /*+ MAX_EXECUTION_TIME(3) */ * FROM users'
        >>> inject("SELECT /*+ANOTHER_HINT*/ * FROM users", 3)
        'SELECT /*+ANOTHER_HINT MAX_EXECUTION_TIME(3)*/ * FROM users'

    Any other statement comes back unchanged. Comments before the SELECT are
    left alone and only the first hint comment after it is merged into.
    """
    return _HintScanner(sql, int(max_execution_time_ms)).rewrite()


class _HintScanner:
    def __init__(self, sql: str, max_execution_time_ms: int) -> None:
        self._sql = sql
        self._ms = max_execution_time_ms
        self._pos = 0
        self._token_start = 0
        self._done = False
        self._found_select = False
        self._found_hint = False
        self._hint_pos: int | None = None
        self._insert_space = False
        self._insert_trailing_space = False

    def rewrite(self) -> str:
        # Loop through tokens like "WORD " or "/* "
        while not self._done:
            match = _TOKEN.match(self._sql, self._pos)
            if match is None:
                break
            self._token_start = self._pos
            self._pos = match.end()
            self._handle_token(match.group(1))

        if not self._found_select or self._hint_pos is None:
            return self._sql
        return self._insert_hint()

    def _hint(self) -> str:
        return f"MAX_EXECUTION_TIME({self._ms})"

    def _handle_token(self, token: str) -> None:
        if token.startswith("--"):
            self._line_comment()
        elif token.startswith("/*+"):
            self._hint_comment()
        elif token.startswith("/*"):
            self._block_comment()
        elif not self._found_select and token[:6].lower() == "select":
            self._select()
        else:
            self._other()

    def _insert_hint(self) -> str:
        if self._found_hint:
            text = self._hint()
        else:
            text = f"/*+ {self._hint()} */"
        if self._insert_space:
            text = " " + text
        if self._insert_trailing_space:
            text = text + " "
        pos = self._hint_pos
        return self._sql[:pos] + text + self._sql[pos:]

    def _line_comment(self) -> None:
        # Search from the comment itself: the token's trailing whitespace may
        # already be the line break that ends it
        match = _LINE_BREAK.search(self._sql, self._token_start)
        self._pos = match.end() if match else len(self._sql)

    def _block_comment(self) -> None:
        # Back up to the opener; the comment may not contain whitespace at all
        match = _BLOCK_END.search(self._sql, self._token_start + 2)
        if match is None:
            self._done = True
            return
        self._pos = match.end()

    def _hint_comment(self) -> None:
        if not self._found_select:
            self._block_comment()
            return

        # The opener may be glued to the previous token, so back up to it and
        # step over just the "/*+"
        match = _HINT_END.search(self._sql, self._token_start + 3)
        self._done = True
        if match is None:
            self._hint_pos = None
            return

        self._found_hint = True
        # Insert at the start of any whitespace before the closing "*/", with
        # a separating space only if the hint body already holds a word
        self._hint_pos = match.start(2)
        self._insert_space = bool(match.group(1))

    def _select(self) -> None:
        word = _WORD.match(self._sql, self._token_start)
        if word is None or word.group().lower() != "select":
            self._other()
            return

        self._found_select = True
        self._pos = self._hint_pos = word.end()

        space = _SPACE.match(self._sql, self._pos)
        if space is not None:
            self._insert_space = True
            self._pos = space.end()
        elif self._sql.startswith("*", self._pos):
            # SELECT* needs a space after the hint to keep the asterisk apart
            self._insert_trailing_space = True
            self._pos += 1

    def _other(self) -> None:
        # Either the SELECT was found and this token follows it, or the
        # statement does not start with SELECT. Both end the scan.
        self._done = True
