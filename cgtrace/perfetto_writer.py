from perfetto.protos.perfetto.trace import perfetto_trace_pb2 as pb2
import cgtrace.emit_dto as dto

_SEQUENCE_ID = 1


class PerfettoWriter:
    """Knows how to write a perfetto trace file.

    All packets go on a single sequence; source locations are interned on it
    and zones refer to them by id.
    """

    def __init__(self):
        self._trace = pb2.Trace()

    def write(self, filename):
        """Writes the trace to a file."""
        with open(filename, "wb") as f:
            f.write(self.serialize())

    def serialize(self):
        """Returns the trace, serialized as protobuf."""
        return self._trace.SerializeToString()

    def add(self, item):
        """Add an emit dto object to the trace."""
        if isinstance(item, (dto.ProcessTrack, dto.Thread)):
            self._add_track(item)
        elif isinstance(item, dto.InternedLocation):
            self._add_location(item)
        elif isinstance(item, dto.ZoneStart):
            self._add_zone_start(item)
        elif isinstance(item, dto.ZoneEnd):
            self._add_slice_event(item, pb2.TrackEvent.Type.TYPE_SLICE_END)
        else:
            raise ValueError(f"Unknown object {item}")

    def _packet(self):
        packet = self._trace.packet.add()
        packet.trusted_packet_sequence_id = _SEQUENCE_ID
        if len(self._trace.packet) == 1:
            packet.sequence_flags = pb2.TracePacket.SEQ_INCREMENTAL_STATE_CLEARED
        return packet

    def _add_track(self, track):
        descriptor = self._packet().track_descriptor
        descriptor.uuid = track.track_uuid
        if isinstance(track, dto.ProcessTrack):
            descriptor.name = track.name
            descriptor.process.pid = track.pid
            descriptor.process.process_name = track.name
        else:
            descriptor.thread.pid = track.pid & 0x7FFFFFFF
            descriptor.thread.tid = track.tid & 0x7FFFFFFF
            descriptor.thread.thread_name = track.thread_name

    def _add_location(self, loc: dto.InternedLocation):
        packet = self._packet()
        packet.sequence_flags |= pb2.TracePacket.SEQ_NEEDS_INCREMENTAL_STATE
        location = packet.interned_data.source_locations.add()
        location.iid = loc.locid
        location.function_name = loc.function_name
        location.file_name = loc.file_name
        location.line_number = loc.line_number

    def _add_zone_start(self, z: dto.ZoneStart):
        event = self._add_slice_event(z, pb2.TrackEvent.Type.TYPE_SLICE_BEGIN)
        event.name = z.name
        if z.locid is not None:
            event.source_location_iid = z.locid
        if z.params:
            _add_parameters(event, z.params)
        event.categories.extend(z.categories)

    def _add_slice_event(self, z, type):
        packet = self._packet()
        packet.sequence_flags |= pb2.TracePacket.SEQ_NEEDS_INCREMENTAL_STATE
        packet.timestamp = z.timestamp
        packet.track_event.type = type
        packet.track_event.track_uuid = z.track_uuid
        return packet.track_event


def _add_parameters(event, params):
    annotation = event.debug_annotations.add()
    annotation.name = "Parameters"
    for k, v in params.items():
        entry = annotation.dict_entries.add()
        entry.name = k
        if isinstance(v, bool):
            entry.bool_value = v
        elif isinstance(v, int):
            entry.int_value = v
        elif isinstance(v, float):
            entry.double_value = v
        else:
            entry.string_value = str(v)
