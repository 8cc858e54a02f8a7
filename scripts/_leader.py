"""Leader geometry for spot elevations: bend (shoulder) and end points."""

from _transform import vec, normalize, cross

# Fixed offsets in model units along the view's right axis / up axis
BEND_OFFSET = 3.0
END_OFFSET = 7.0
SHOULDER = 1.0


def view_right(view_direction, up_direction):
    """right = normalize(up x viewDirection)."""
    right = normalize(cross(up_direction, view_direction))
    if right is None:
        raise ValueError("View up and view direction are parallel")
    return right


def leader_points(view_direction, up_direction, side, anchor, *,
                  bend_offset=BEND_OFFSET, end_offset=END_OFFSET,
                  shoulder=SHOULDER):
    """Return (bend, end) for a leader starting at `anchor`.

    side: -1 = left, +1 = right. Both points sit `shoulder` above the
    anchor; the end continues horizontally past the bend. No collision
    check against existing annotations.
    """
    right = view_right(view_direction, up_direction)
    up = vec(up_direction)
    anchor = vec(anchor)
    bend = anchor + right * side * bend_offset + up * shoulder
    end = anchor + right * side * end_offset + up * shoulder
    return bend, end


def leader_for_view(view, side, anchor, leader_cfg=None):
    """leader_points using a view's orientation and [leader] settings."""
    cfg = leader_cfg or {}
    return leader_points(
        view.view_direction, view.up_direction, side, anchor,
        bend_offset=float(cfg.get("bend_offset", BEND_OFFSET)),
        end_offset=float(cfg.get("end_offset", END_OFFSET)),
        shoulder=float(cfg.get("shoulder", SHOULDER)),
    )


# Self-test
if __name__ == "__main__":
    # Front section: view direction -Y, up +Z -> right = +X
    vd, up = (0, -1, 0), (0, 0, 1)
    for side in (-1, 1):
        bend, end = leader_points(vd, up, side, (0, 0, 0))
        print(f"side={side:+d}: bend={bend.round(3).tolist()} "
              f"end={end.round(3).tolist()}")
    assert leader_points(vd, up, -1, (0, 0, 0))[0][0] == \
        -leader_points(vd, up, 1, (0, 0, 0))[0][0]
    print("=== All tests passed ===")
