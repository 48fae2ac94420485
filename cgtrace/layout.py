import logging
import cgtrace.dto as dto

logger = logging.getLogger(__name__)


def layout(profile, start_time, root):
    """Lays out the call tree under `root` as nested zones starting at `start_time`.

    The profile only carries aggregate costs, so costs are taken as elapsed
    durations: each child occupies the next `cost` nanoseconds after its
    previous sibling, starting at the parent's start. Time a called function
    spends outside its children becomes an extra `<name>_body` zone.

    Returns the zones in depth-first pre-order.
    """
    zones = []
    _layout_function(profile, zones, start_time, root, None, 0, set())
    return zones


def profile_to_trace(profile, start_time, roots=None):
    """Converts the profile to a trace, with one track per root function."""
    if roots is None:
        roots = profile.roots()

    process = dto.ProcessTrack(
        pid=0, name=profile.command or profile.creator or "Profile"
    )
    for tid, root in enumerate(roots, start=1):
        zones = layout(profile, start_time, root)
        process.subtracks.append(dto.ZonesTrack(tid=tid, name=root.name, zones=zones))
    return dto.Trace(process_tracks=[process])


def _layout_function(profile, zones, start, fn, edge, depth, path):
    duration = _duration(profile, fn, edge)
    zone = dto.Zone(
        start=start,
        end=start + duration,
        name=fn.name,
        depth=depth,
        loc=dto.Location(fn.name, fn.file or "", fn.line_number),
        params=_params(profile, fn, edge),
    )
    zones.append(zone)

    if fn.id in path:
        logger.debug("Not expanding recursive call to %s", fn.id)
        zone.params["recursive"] = True
        return

    path.add(fn.id)
    child_start = start
    for call in fn.outgoing():
        callee = profile.function(call.callee_id)
        if callee is None:
            logger.debug("Skipping call to unknown function %s", call.callee_id)
        else:
            _layout_function(
                profile, zones, child_start, callee, call, depth + 1, path
            )
        child_start += call.cost
    path.remove(fn.id)

    # The root gets no self-time zone; a leaf call gets one covering the whole call.
    if edge is not None and child_start - start < edge.cost:
        zones.append(
            dto.Zone(
                start=child_start,
                end=start + edge.cost,
                name=f"{fn.name}_body",
                depth=depth + 1,
                categories=["self"],
            )
        )


def _duration(profile, fn, edge):
    if edge is not None:
        return edge.cost
    if fn.called:
        # Laid out on its own, a called function spans all of its calls.
        return profile.incoming_cost(fn.id)
    return fn.cost or profile.total_cost


def _params(profile, fn, edge):
    params = {}
    if fn.module:
        params["module"] = fn.module
    params["called"] = edge.calls if edge is not None else fn.called
    if edge is None:
        if profile.creator is not None:
            params["creator"] = profile.creator
        if profile.command is not None:
            params["command"] = profile.command
    return params
