class ParseError(ValueError):
    """Raised when a callgrind profile cannot be parsed."""

    def __init__(self, message, line, line_number):
        super().__init__(f"{message} (line {line_number}): {line}")
        self.line = line
        self.line_number = line_number


class MalformedSchemaError(ParseError):
    """A cost line carries more values than the declared positions and events."""

    def __init__(self, line, line_number):
        super().__init__("too many values", line, line_number)


class TrailingInputError(ParseError):
    """Input is left over after the last part of the profile."""

    def __init__(self, line, line_number):
        super().__init__(
            "expected to be at end of file, but had line left", line, line_number
        )
