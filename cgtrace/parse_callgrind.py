import logging
import os
import re
from cgtrace.errors import MalformedSchemaError, TrailingInputError
from cgtrace.line_cursor import LineCursor
from cgtrace.profile import Profile

logger = logging.getLogger(__name__)

_SUBPOSITION = r"(?:0x[0-9a-fA-F]+|\d+|[+-]\d+|\*)"
_COST_RE = re.compile(rf"^{_SUBPOSITION}(?:\s+{_SUBPOSITION})*$")
_KEY_RE = re.compile(r"^(\w+):")
_POSITION_RE = re.compile(
    r"^(?P<position>ob|fl|fi|fe|fn|cob|cfl|cfi|cfe|cfn|jfi)="
    r"\s*(?:\((?P<id>\d+)\))?(?:\s*(?P<name>.+))?"
)

# Specifier -> ID table it shares with its base category.
_ID_TABLES = {
    "ob": "ob",
    "fl": "fl",
    "fi": "fl",
    "fe": "fl",
    "fn": "fn",
    "cob": "ob",
    "cfl": "fl",
    "cfi": "fl",
    "cfe": "fl",
    "cfn": "fn",
    "jfi": "fl",
}

# Specifier -> slot in the position table.
_POSITION_KEYS = {
    "ob": "ob",
    "fl": "fl",
    "fi": "fl",
    "fe": "fl",
    "fn": "fn",
    "cob": "cob",
    "cfl": "cfl",
    "cfi": "cfl",
    "cfe": "cfl",
    "cfn": "cfn",
    "jfi": "jfi",
}

# Suffix -> nanoseconds per unit.
_UNIT_SUFFIXES = {
    "nsec": 1,
    "usec": 1_000,
    "msec": 1_000_000,
}

IDENTITY_POLICIES = ("name", "qualified")


def parse_callgrind(filename, identity="name"):
    """Parses the callgrind profile in `filename` into a `Profile`."""
    with open(filename, "r", encoding="utf-8") as file:
        return CallgrindParser(file, identity=identity).parse()


def parse_callgrind_lines(lines, identity="name"):
    """Parses a callgrind profile given as an iterable of text lines."""
    return CallgrindParser(lines, identity=identity).parse()


def cost_multiplier(event_name):
    """Returns the number of nanoseconds one unit of `event_name` stands for.

    `usec` means one microsecond, `100usec` a hundred of them; names without a
    known time suffix count raw units.
    """
    for suffix, unit in _UNIT_SUFFIXES.items():
        if event_name.endswith(suffix):
            prefix = event_name[: -len(suffix)]
            return int(prefix) * unit if prefix.isdigit() else unit
    return 1


def _parse_int(text, base=10):
    try:
        return int(text, base)
    except ValueError:
        return 0


def _parse_float(text):
    try:
        return float(text)
    except ValueError:
        return 0.0


class CallgrindParser:
    """Parses the callgrind format into a call graph.

    Only the subset needed for a single-metric call tree is understood: the
    first event column is the cost, jump records are skipped, and functions
    are identified by name (or by `module:file:name` in `qualified` mode).
    """

    def __init__(self, lines, identity="name"):
        if identity not in IDENTITY_POLICIES:
            raise ValueError(f"Unknown identity policy {identity}")
        self._cursor = LineCursor(lines)
        self._identity = identity
        self.profile = Profile()

        self._positions = {}  # position key -> current name
        self._position_ids = {}  # "table:id" -> name

        self._position_count = 1
        self._cost_positions = ["line"]
        self._last_positions = [0]

        self._event_count = 0
        self._cost_events = []

    @property
    def last_positions(self):
        """The last absolute value decoded for each position column."""
        return list(self._last_positions)

    def parse(self):
        """Parses the whole input and returns the resulting `Profile`."""
        self._cursor.advance()

        self._parse_key("version")
        creator = self._parse_key("creator")
        if creator is not None:
            self.profile.creator = creator

        while self._parse_part():
            pass

        if not self._cursor.at_end():
            raise TrailingInputError(
                self._cursor.current_line(), self._cursor.line_number
            )
        return self.profile

    def _parse_part(self):
        if not self._parse_header_line():
            return False
        while self._parse_header_line():
            pass

        if not self._parse_body_line():
            return False
        while self._parse_body_line():
            pass

        return True

    def _parse_header_line(self):
        return (
            self._parse_empty()
            or self._parse_comment()
            or self._parse_part_detail()
            or self._parse_command()
            or self._parse_description()
            or self._parse_event_specification()
            or self._parse_cost_line_definition()
            or self._parse_cost_summary()
        )

    def _parse_body_line(self):
        return (
            self._parse_empty()
            or self._parse_comment()
            or self._parse_cost_line(0)
            or self._parse_position_spec()
            or self._parse_association_spec()
        )

    def _parse_empty(self):
        if self._cursor.at_end() or self._cursor.current_line() != "":
            return False
        self._cursor.consume()
        return True

    def _parse_comment(self):
        if not self._cursor.current_line().startswith("#"):
            return False
        self._cursor.consume()
        return True

    def _parse_part_detail(self):
        key, _ = self._parse_keys("pid", "thread", "part")
        return key is not None

    def _parse_command(self):
        value = self._parse_key("cmd")
        if value is None:
            return False
        self.profile.command = value
        return True

    def _parse_description(self):
        return self._parse_key("desc") is not None

    def _parse_event_specification(self):
        return self._parse_key("event") is not None

    def _parse_cost_line_definition(self):
        key, value = self._parse_keys("events", "positions")
        if key is None:
            return False

        items = value.split()
        if key == "events":
            self._event_count = len(items)
            self._cost_events = items
        else:
            self._position_count = len(items)
            self._cost_positions = items
            self._last_positions = [0] * len(items)
        return True

    def _parse_cost_summary(self):
        key, value = self._parse_keys("summary", "totals")
        if key is None:
            return False

        fields = value.split()
        if fields:
            self.profile.total_cost = self._scale(_parse_float(fields[0]))
        return True

    def _parse_cost_line(self, calls):
        line = self._cursor.current_line()
        if not _COST_RE.match(line):
            return False

        fn = self._function()

        if calls == 0 and "ob" in self._positions:
            self._positions["cob"] = self._positions["ob"]

        values = line.split()
        if len(values) > self._position_count + self._event_count:
            raise MalformedSchemaError(line, self._cursor.line_number)

        for i, position in enumerate(values[: self._position_count]):
            self._last_positions[i] = self._decode_position(
                position, self._last_positions[i]
            )

        events = values[self._position_count :]
        events += ["0"] * (self._event_count - len(events))
        cost = self._scale(_parse_float(events[0])) if events else 0

        if calls == 0:
            fn.line_number = self._line_number()
            fn.cost += cost
        else:
            callee = self._callee()
            callee.line_number = self._line_number()
            callee.called += calls
            fn.add_call(callee.id, calls, cost)
            # cfl/cob only hold for the call they precede.
            self._positions.pop("cfl", None)
            self._positions.pop("cob", None)

        self._cursor.consume()
        return True

    def _parse_position_spec(self):
        line = self._cursor.current_line()

        if line.startswith("jump=") or line.startswith("jcnd="):
            logger.debug("Ignoring jump record: %s", line)
            self._cursor.consume()
            return True

        m = _POSITION_RE.match(line)
        if not m:
            return False

        position = m.group("position")
        id = m.group("id")
        name = m.group("name") or ""

        if id:
            table_key = f"{_ID_TABLES[position]}:{id}"
            if name:
                self._position_ids[table_key] = name
            else:
                name = self._position_ids.get(table_key, "")
        self._positions[_POSITION_KEYS[position]] = name

        self._cursor.consume()
        return True

    def _parse_association_spec(self):
        line = self._cursor.current_line()
        if not line.startswith("calls="):
            return False

        values = line[len("calls=") :].split()
        calls = _parse_int(values[0]) if values else 0

        self._cursor.consume()
        if not self._parse_cost_line(calls):
            logger.debug("No cost line after association: %s", line)
        return True

    def _parse_key(self, key):
        _, value = self._parse_keys(key)
        return value

    def _parse_keys(self, *keys):
        """Consumes a `key: value` line if its key is one of `keys`."""
        line = self._cursor.current_line()

        m = _KEY_RE.match(line)
        if not m or m.group(1) not in keys:
            return None, None

        self._cursor.consume()
        return m.group(1), line[m.end() :].strip()

    def _decode_position(self, position, last):
        if position == "*":
            return last
        if position[0] in "+-":
            return last + _parse_int(position)
        if position.startswith("0x"):
            return _parse_int(position, 16)
        return _parse_int(position)

    def _line_number(self):
        return self._last_positions[0] if self._last_positions else 0

    def _scale(self, value):
        event = self._cost_events[0] if self._cost_events else ""
        return int(value * cost_multiplier(event))

    def _function(self):
        return self._make_function(
            self._positions.get("ob", ""),
            self._positions.get("fl", ""),
            self._positions.get("fn", ""),
        )

    def _callee(self):
        # Without cob/cfl the callee lives in the caller's object and file.
        return self._make_function(
            self._positions.get("cob", self._positions.get("ob", "")),
            self._positions.get("cfl", self._positions.get("fl", "")),
            self._positions.get("cfn", ""),
        )

    def _make_function(self, module, filename, name):
        if self._identity == "qualified":
            id = f"{module}:{filename}:{name}"
        else:
            id = name
        return self.profile.get_or_add_function(
            id,
            name,
            module=os.path.basename(module) if module else None,
            file=filename or None,
        )
