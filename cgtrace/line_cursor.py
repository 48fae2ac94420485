class LineCursor:
    """One-line lookahead over a stream of text lines.

    Lines are stripped of surrounding whitespace; lines starting with `#` are
    skipped and never become the current line.
    """

    def __init__(self, lines):
        self._lines = iter(lines)
        self._line = ""
        self._at_end = False
        self.line_number = 0

    def current_line(self):
        """Returns the current (lookahead) line."""
        return self._line

    def at_end(self):
        """Check if the underlying stream is exhausted."""
        return self._at_end

    def advance(self):
        """Loads the next non-comment line."""
        while True:
            self._read()
            if self._at_end or not self._line.startswith("#"):
                break

    def consume(self):
        """Returns the current line and moves to the next one."""
        line = self._line
        self.advance()
        return line

    def _read(self):
        line = next(self._lines, None)
        if line is None:
            self._line = ""
            self._at_end = True
        else:
            self.line_number += 1
            self._line = line.strip()
