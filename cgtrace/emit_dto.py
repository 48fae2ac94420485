from dataclasses import dataclass, field


@dataclass
class ProcessTrack:
    """Describes a process track in a profiling trace."""

    track_uuid: int
    pid: int
    name: str


@dataclass
class Thread:
    """Describes a thread in a profiling trace."""

    track_uuid: int
    pid: int
    tid: int
    thread_name: str


@dataclass
class InternedLocation:
    """A source location announced once and referenced by `locid` afterwards."""

    locid: int
    function_name: str
    file_name: str
    line_number: int


@dataclass
class ZoneStart:
    """Describes the start of an execution zone."""

    track_uuid: int
    timestamp: int
    name: str
    locid: int | None = None
    params: dict = field(default_factory=dict)
    categories: list[str] = field(default_factory=list)


@dataclass
class ZoneEnd:
    """Describes the end of an execution zone."""

    track_uuid: int
    timestamp: int
