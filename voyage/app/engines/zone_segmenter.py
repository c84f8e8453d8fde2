"""ECA zone segmentation of a route.

Partitions a route into contiguous segments tagged in-zone or out-of-zone so
the fuel ledger can charge consumption to the correct fuel grade. Segment
distances always sum to the route distance.
"""

import logging

from voyage.app.models.compliance import ComplianceData, FuelSwitchPoint, RouteSegment
from voyage.app.models.route import RouteData

logger = logging.getLogger(__name__)

# Speed used to turn switch-point times into distances when a point has no
# distance of its own
FALLBACK_SPEED_KNOTS = 14.0


def segment(
    route: RouteData,
    compliance: ComplianceData | None,
    *,
    speed_knots: float = FALLBACK_SPEED_KNOTS,
) -> list[RouteSegment]:
    """Split the route into ordered ECA / non-ECA segments.

    Args:
        route: Calculated route (distance and port codes are used)
        compliance: Zone-crossing summary, or None when compliance was not run
        speed_knots: Speed used when a switch point only carries a time offset

    Returns:
        Ordered, non-overlapping segments whose distances sum to route.distance_nm
    """
    total = route.distance_nm
    origin = route.origin_port_code
    destination = route.destination_port_code

    if compliance is None or not compliance.has_eca_zones or compliance.total_eca_distance_nm <= 0:
        return [_whole_route_segment(route)]

    points = compliance.switching_points
    if points:
        return _segments_from_switch_points(points, total, origin, destination, speed_knots)

    # Aggregate distance only: approximate with the zone distance at the end
    logger.info(
        f"No switch points for {origin}->{destination}; "
        f"placing {compliance.total_eca_distance_nm:.1f} nm of ECA at the end of the route"
    )
    eca_distance = min(compliance.total_eca_distance_nm, total)
    non_eca_distance = total - eca_distance
    zone_name = compliance.zones_crossed[0].zone_name if compliance.zones_crossed else None

    segments: list[RouteSegment] = []
    if non_eca_distance > 0:
        segments.append(
            RouteSegment(
                segment_id="seg_0",
                from_label=origin,
                to_label="ECA entry",
                distance_nm=non_eca_distance,
                in_eca=False,
            )
        )
    segments.append(
        RouteSegment(
            segment_id=f"seg_{len(segments)}",
            from_label="ECA entry" if segments else origin,
            to_label=destination,
            distance_nm=total - non_eca_distance,
            in_eca=True,
            zone_name=zone_name,
        )
    )
    return segments


def _whole_route_segment(route: RouteData) -> RouteSegment:
    return RouteSegment(
        segment_id="seg_0",
        from_label=route.origin_port_code,
        to_label=route.destination_port_code,
        distance_nm=route.distance_nm,
        in_eca=False,
    )


def _point_distance(point: FuelSwitchPoint, speed_knots: float) -> float:
    if point.distance_from_origin_nm is not None:
        return point.distance_from_origin_nm
    return point.time_from_start_hours * speed_knots


def _segments_from_switch_points(
    points: list[FuelSwitchPoint],
    total: float,
    origin: str,
    destination: str,
    speed_knots: float,
) -> list[RouteSegment]:
    ordered = sorted(points, key=lambda p: _point_distance(p, speed_knots))

    # A route that starts inside a zone opens with a switch back to VLSFO
    in_eca = ordered[0].action == "SWITCH_TO_VLSFO"
    zone_name: str | None = None

    segments: list[RouteSegment] = []
    boundary = 0.0
    label = origin

    for i, point in enumerate(ordered, start=1):
        distance = min(max(_point_distance(point, speed_knots), boundary), total)
        next_label = f"Boundary {i}"
        if distance > boundary:
            segments.append(
                RouteSegment(
                    segment_id=f"seg_{len(segments)}",
                    from_label=label,
                    to_label=next_label,
                    distance_nm=distance - boundary,
                    in_eca=in_eca,
                    zone_name=zone_name if in_eca else None,
                )
            )
            label = next_label
        boundary = distance
        in_eca = point.action == "SWITCH_TO_MGO"
        zone_name = _zone_from_reason(point.reason) if in_eca else None

    if total > boundary or not segments:
        segments.append(
            RouteSegment(
                segment_id=f"seg_{len(segments)}",
                from_label=label,
                to_label=destination,
                distance_nm=total - boundary,
                in_eca=in_eca,
                zone_name=zone_name if in_eca else None,
            )
        )
    else:
        last = segments[-1]
        segments[-1] = last.model_copy(update={"to_label": destination})

    return segments


def _zone_from_reason(reason: str) -> str | None:
    # Reasons read "Entering <zone> - switch to MGO ..."
    if reason.startswith("Entering ") and " - " in reason:
        return reason[len("Entering ") : reason.index(" - ")]
    return None
