import math
from collections import namedtuple
from numbers import Real

from errors import InvalidInputError
from logger import logger
from utils import format_count

"""
squarified treemap layout, after
  Bruls, Huizing, van Wijk - "Squarified Treemaps" (2000)

the squarify module does the same thing, but the rectangles here have to
partition the bounds exactly (no padding, no gaps), and the row edges are
snapped so repeated floating point sums can't drift past the bounds

https://github.com/laserson/squarify
"""


class LayoutNode(namedtuple('LayoutNode', ['label', 'value', 'x0', 'y0', 'x1', 'y1', 'index'])):
    __slots__ = ()

    @property
    def dx(self):
        return self.x1 - self.x0

    @property
    def dy(self):
        return self.y1 - self.y0

    @property
    def area(self):
        return self.dx * self.dy

    @property
    def text(self):
        return '%s (%s)' % (self.label, format_count(self.value))

    def contains(self, x, y):
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1


class LayoutResult(object):
    """rectangles for one series, in series order, plus the bounds they fill"""

    def __init__(self, nodes, width, height):
        self.nodes = tuple(nodes)
        self.width = width
        self.height = height

    @property
    def bounds(self):
        return 0, 0, self.width, self.height

    def __iter__(self):
        return iter(self.nodes)

    def __len__(self):
        return len(self.nodes)

    def __getitem__(self, key):
        return self.nodes[key]

    def __eq__(self, other):
        if not isinstance(other, LayoutResult):
            return NotImplemented
        return (self.nodes, self.width, self.height) == (other.nodes, other.width, other.height)

    def __repr__(self):
        return '<LayoutResult %sx%s: %d nodes>' % (self.width, self.height, len(self.nodes))

    def find(self, x, y):
        """return the node under (x, y), or None"""
        for node in self.nodes[::-1]:
            if node.contains(x, y):
                return node
        return None

    def normalized(self):
        """same layout, in the unit square"""
        if self.width <= 0 or self.height <= 0:
            return LayoutResult((), 1.0, 1.0)
        sx = 1.0 / self.width
        sy = 1.0 / self.height
        nodes = [n._replace(x0=n.x0 * sx, y0=n.y0 * sy, x1=n.x1 * sx, y1=n.y1 * sy)
                 for n in self.nodes]
        return LayoutResult(nodes, 1.0, 1.0)

    def to_dict(self):
        return {
            'width': self.width,
            'height': self.height,
            'nodes': [n._asdict() for n in self.nodes],
        }


def compute_rectangles(series, width, height):
    """lay out a frequency series in a width x height box

    given:
    - a sequence of (label, count) entries, normally sorted by count descending
    - the bounds
    do this:
    - drop zero counts
    - scale counts so they sum to width * height
    - squarify
    return a LayoutResult with nodes in series order
    """
    check_bounds(width, height)
    for x in series:
        _check_value(x.label, x.count)

    if width <= 0 or height <= 0:
        logger.debug('empty bounds %sx%s, nothing to lay out' % (width, height))
        return LayoutResult((), width, height)

    entries = [(n, x) for n, x in enumerate(series) if x.count > 0]
    if not entries:
        return LayoutResult((), width, height)

    total = float(sum(x.count for _, x in entries))
    scale = float(width) * float(height) / total
    areas = [x.count * scale for _, x in entries]

    rects = squarify(areas, 0.0, 0.0, float(width), float(height))
    if len(rects) < len(entries):
        logger.info('%d of %d values too small to draw at %sx%s' % (
            len(entries) - len(rects), len(entries), width, height))

    nodes = [LayoutNode(x.label, x.count, r[0], r[1], r[2], r[3], n)
             for (n, x), r in zip(entries, rects)]
    return LayoutResult(nodes, width, height)


def squarify(areas, x0, y0, x1, y1):
    """core geometric subdivision algorithm
    given:
    - a list of positive areas summing to the area of the box
    - bounding box
    do this:
    - pick the shorter side of the free box
    - grow a row along that side while its worst aspect ratio doesn't get worse
    - fix the row against the longer side, shrink the free box, repeat
    - the last item takes whatever is left
    return one (x0, y0, x1, y1) per area, in input order
    """
    rects = []
    start = 0
    n = len(areas)
    while start < n:
        dx = x1 - x0
        dy = y1 - y0
        if dx <= 0 or dy <= 0:
            logger.debug('no free space left for %d items' % (n - start))
            break

        if start == n - 1:
            rects.append((x0, y0, x1, y1))
            break

        end, row_area = _pick_row(areas, start, min(dx, dy))
        row = areas[start:end]
        last_row = end == n

        if dx >= dy:
            # wide box - row is a column on the left, full height
            xr = x1 if last_row else min(x0 + row_area / dy, x1)
            for ya, yb in _split(row, row_area, y0, y1):
                rects.append((x0, ya, xr, yb))
            logger.trace('column of %d: x %f..%f' % (len(row), x0, xr))
            x0 = xr
        else:
            # tall box - row across the top, full width
            yr = y1 if last_row else min(y0 + row_area / dx, y1)
            for xa, xb in _split(row, row_area, x0, x1):
                rects.append((xa, y0, xb, yr))
            logger.trace('row of %d: y %f..%f' % (len(row), y0, yr))
            y0 = yr

        start = end

    return rects


def _pick_row(areas, start, side):
    row_min = row_max = row_area = areas[start]
    worst = _worst(row_area, row_min, row_max, side)
    end = start + 1
    while end < len(areas):
        a = areas[end]
        cand_min = min(row_min, a)
        cand_max = max(row_max, a)
        cand_area = row_area + a
        cand_worst = _worst(cand_area, cand_min, cand_max, side)
        if cand_worst > worst:
            break
        row_min, row_max, row_area, worst = cand_min, cand_max, cand_area, cand_worst
        end += 1
    return end, row_area


def _worst(row_area, row_min, row_max, side):
    # largest aspect ratio in a row of total row_area laid along side
    s2 = side * side
    a2 = row_area * row_area
    return max(s2 * row_max / a2, a2 / (s2 * row_min))


def _split(row, row_area, lo, hi):
    # consecutive spans of [lo, hi] proportional to row, the last one ends at hi
    spans = []
    pos = lo
    length = hi - lo
    last = len(row) - 1
    for n, a in enumerate(row):
        end = hi if n == last else min(pos + length * a / row_area, hi)
        spans.append((pos, end))
        pos = end
    return spans


def check_bounds(width, height):
    for name, v in (('width', width), ('height', height)):
        if isinstance(v, bool) or not isinstance(v, Real) or not math.isfinite(v):
            raise InvalidInputError('%s must be a finite number, got %r' % (name, v))


def _check_value(label, value):
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise InvalidInputError('value for %r must be a finite number, got %r' % (label, value))
    if value < 0:
        raise InvalidInputError('value for %r is negative: %r' % (label, value))
