import cgtrace.emit_dto as emit_dto


def emit_trace(trace):
    """Generates the emit DTO objects for the given trace.

    All tracks are announced first; then, for each zones track, its zones are
    turned into properly nested begin/end events. A source location is
    announced right before the first zone that uses it.
    """
    track_emitter = _TrackEmitter()
    locations = _Locations()
    zones_tracks = []  # (track_uuid, dto.ZonesTrack)

    for process in trace.process_tracks:
        yield track_emitter.process_track(process.pid, process.name)
        for track in process.subtracks:
            uuid = track_emitter.next_uuid()
            yield track_emitter.thread_track(uuid, process.pid, track.tid, track.name)
            zones_tracks.append((uuid, track))

    for uuid, track in zones_tracks:
        yield from _emit_zones(uuid, track.zones, locations)


def _emit_zones(track_uuid, zones, locations):
    """Emits start/end events for zones given in depth-first pre-order."""
    open_zones = []
    for zone in zones:
        while open_zones and open_zones[-1].depth >= zone.depth:
            yield emit_dto.ZoneEnd(track_uuid, open_zones.pop().end)

        locid = None
        if zone.loc:
            locid, new_location = locations.intern(zone.loc)
            if new_location:
                yield new_location
        yield emit_dto.ZoneStart(
            track_uuid=track_uuid,
            timestamp=zone.start,
            name=zone.name,
            locid=locid,
            params=zone.params.copy(),
            categories=zone.categories.copy(),
        )
        open_zones.append(zone)

    while open_zones:
        yield emit_dto.ZoneEnd(track_uuid, open_zones.pop().end)


class _Locations:
    """Hands out location ids, one per distinct source location."""

    def __init__(self):
        self._ids = {}  # (function, file, line) -> locid

    def intern(self, loc):
        """Returns the id for `loc`, and the DTO to emit if `loc` is new."""
        key = (loc.function_name, loc.file_name, loc.line_number)
        if key in self._ids:
            return self._ids[key], None

        locid = len(self._ids) + 1
        self._ids[key] = locid
        return locid, emit_dto.InternedLocation(locid, *key)


class _TrackEmitter:
    def __init__(self):
        self._track_uuid_gen = _track_id_gen()

    def next_uuid(self):
        """Generates the next track uuid."""
        return next(self._track_uuid_gen)

    def process_track(self, pid, name):
        """Emits a process track."""
        return emit_dto.ProcessTrack(track_uuid=self.next_uuid(), pid=pid, name=name)

    def thread_track(self, uuid, pid, tid, name):
        """Emits a thread track holding zones."""
        return emit_dto.Thread(track_uuid=uuid, pid=pid, tid=tid, thread_name=name)


def _track_id_gen():
    """Generates unique track ids."""
    track_uuid = 1
    while True:
        yield track_uuid
        track_uuid += 1
