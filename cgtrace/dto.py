from dataclasses import dataclass, field


@dataclass
class Location:
    """Describes a location in the source code."""

    function_name: str
    file_name: str
    line_number: int


@dataclass
class Zone:
    """Describes an execution zone; one interval of the laid out call tree."""

    start: int
    end: int
    name: str
    depth: int = 0
    loc: Location | None = None
    params: dict = field(default_factory=dict)
    categories: list[str] = field(default_factory=list)


@dataclass
class ZonesTrack:
    """Describes a track for zones."""

    tid: int
    name: str
    zones: list[Zone] = field(default_factory=list)


@dataclass
class ProcessTrack:
    """Describes a track for a process."""

    pid: int
    name: str
    subtracks: list[ZonesTrack] = field(default_factory=list)


@dataclass
class Trace:
    """Describes a trace with multiple tracks."""

    process_tracks: list[ProcessTrack] = field(default_factory=list)
