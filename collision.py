def circle_intersects_rect(
    cx: float,
    cy: float,
    r: float,
    rx: float,
    ry: float,
    rw: float,
    rh: float,
) -> bool:
    """Closest-point circle vs axis-aligned rectangle test (touching counts)."""
    nearest_x = min(max(cx, rx), rx + rw)
    nearest_y = min(max(cy, ry), ry + rh)
    dx = cx - nearest_x
    dy = cy - nearest_y
    return (dx * dx + dy * dy) <= r * r
