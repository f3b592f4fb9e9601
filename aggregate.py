import math
from collections import namedtuple
from collections.abc import Mapping
from numbers import Integral, Real

from errors import InvalidInputError
from logger import logger
from utils import format_count


class AttributeValueCount(namedtuple('AttributeValueCount', ['label', 'count'])):
    __slots__ = ()

    @property
    def text(self):
        return '%s (%s)' % (self.label, format_count(self.count))


def aggregate(raw_groups):
    """turn grouped query rows into a frequency series

    given:
    - an iterable of rows, each either a mapping with a 'value' (or 'label')
      and a 'count' key, or a (label, count) pair
    do this:
    - drop rows with no label, an empty label, or no count
    - merge rows sharing a label by summing their counts
    - sort by count descending, equal counts keep first-seen order
    return a tuple of AttributeValueCount
    """
    counts = {}
    for row in raw_groups:
        label, count = _unpack(row)
        if label is None or count is None:
            continue
        label = str(label)
        if label == '':
            continue
        count = _check_count(label, count)
        # dicts keep insertion order, so a merged label stays at its first position
        counts[label] = counts.get(label, 0) + count

    series = [AttributeValueCount(label, count) for label, count in counts.items()]
    series.sort(key=lambda x: -x.count)
    logger.debug('aggregated %d distinct values' % len(series))
    return tuple(series)


def _unpack(row):
    if isinstance(row, Mapping):
        label = row.get('value', row.get('label'))
        return label, row.get('count')
    try:
        label, count = row
    except (TypeError, ValueError):
        raise InvalidInputError('expected a mapping or a (label, count) pair, got %r' % (row, ))
    return label, count


def _check_count(label, count):
    if isinstance(count, bool) or not isinstance(count, Real):
        raise InvalidInputError('count for %r is not a number: %r' % (label, count))
    if isinstance(count, Integral):
        count = int(count)
    elif math.isfinite(count) and float(count).is_integer():
        count = int(count)
    else:
        raise InvalidInputError('count for %r is not an integer: %r' % (label, count))
    if count < 0:
        raise InvalidInputError('count for %r is negative: %d' % (label, count))
    return count


def total(series):
    return sum(x.count for x in series)


def print_series(series, limit=None):
    """print to stdout"""
    width = max_label_width = 0
    if series:
        max_label_width = min(40, max(len(x.label) for x in series))
        width = len(format_count(series[0].count))
    grand_total = total(series)
    for n, x in enumerate(series):
        if limit is not None and n >= limit:
            print('  ... %d more' % (len(series) - limit))
            break
        share = 100.0 * x.count / grand_total if grand_total else 0.0
        print('  %-*s %*s  %5.1f%%' % (max_label_width, x.label, width,
                                       format_count(x.count), share))


def series_to_dict(series):
    return [{'label': x.label, 'count': x.count} for x in series]


def dict_to_series(d):
    # archived series are re-aggregated so a hand-edited file is checked too
    return aggregate(d)
