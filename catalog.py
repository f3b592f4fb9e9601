import abc
import asyncio
import json
import os
from collections import namedtuple

from logger import logger

Layer = namedtuple('Layer', ['id', 'title'])


class Extent(namedtuple('Extent', ['xmin', 'ymin', 'xmax', 'ymax'])):
    """axis aligned spatial filter, in the same coordinates as the features"""
    __slots__ = ()

    @classmethod
    def parse(cls, text):
        """'xmin,ymin,xmax,ymax' -> Extent"""
        parts = [float(p) for p in text.split(',')]
        if len(parts) != 4:
            raise ValueError('extent needs 4 numbers, got %d' % len(parts))
        xmin, ymin, xmax, ymax = parts
        if xmin > xmax or ymin > ymax:
            raise ValueError('extent min exceeds max: %s' % text)
        return cls(xmin, ymin, xmax, ymax)

    def intersects(self, bbox):
        xmin, ymin, xmax, ymax = bbox
        return not (xmax < self.xmin or xmin > self.xmax or
                    ymax < self.ymin or ymin > self.ymax)


class LayerCatalog(abc.ABC):
    """the feature sources available in the current map context"""

    @abc.abstractmethod
    async def list_queryable_layers(self):
        """return a list of Layer"""

    @abc.abstractmethod
    async def list_attributes(self, layer_id):
        """return the field names of a layer"""


class StatisticsQueryAdapter(abc.ABC):

    @abc.abstractmethod
    async def query_grouped_counts(self, layer_id, attribute, spatial_filter):
        """count features intersecting spatial_filter, grouped by attribute value

        return a list of {'value': ..., 'count': ...}; features without the
        attribute may show up with a None value
        """


class GeoJSONCatalog(LayerCatalog, StatisticsQueryAdapter):
    """layers and grouped counts from local GeoJSON FeatureCollection files

    one file is one layer. files are parsed on first use, in a worker thread.
    """

    def __init__(self, paths):
        self.paths = list(paths)
        self._collections = {}

    async def list_queryable_layers(self):
        layers = []
        ids = []
        titles = []
        for path in self.paths:
            layer_id = os.path.realpath(path)
            if layer_id in ids:
                continue
            try:
                collection = await self._load(layer_id)
            except (OSError, ValueError) as exc:
                logger.warning('skipping %s: %s' % (path, exc))
                continue
            title = collection.get('name') or os.path.splitext(os.path.basename(path))[0]
            if title in titles:
                logger.debug('skipping %s, duplicate title %r' % (path, title))
                continue
            layers.append(Layer(layer_id, title))
            ids.append(layer_id)
            titles.append(title)
        logger.debug('found %d layers in %d files' % (len(layers), len(self.paths)))
        return layers

    async def list_attributes(self, layer_id):
        collection = await self._get(layer_id)
        names = {}
        for feature in collection['features']:
            for key in (feature.get('properties') or {}):
                names.setdefault(key, None)
        return list(names)

    async def query_grouped_counts(self, layer_id, attribute, spatial_filter):
        collection = await self._get(layer_id)
        counts = {}
        matched = 0
        for feature in collection['features']:
            if spatial_filter is not None:
                bbox = geometry_bbox(feature.get('geometry'))
                if bbox is None or not spatial_filter.intersects(bbox):
                    continue
            matched += 1
            value = (feature.get('properties') or {}).get(attribute)
            if isinstance(value, (dict, list)):
                value = json.dumps(value, sort_keys=True)
            counts[value] = counts.get(value, 0) + 1
        logger.debug('%s: %d features in extent, %d groups' % (attribute, matched, len(counts)))
        return [{'value': value, 'count': count} for value, count in counts.items()]

    async def _get(self, layer_id):
        if layer_id not in [os.path.realpath(p) for p in self.paths]:
            raise KeyError('unknown layer: %s' % layer_id)
        return await self._load(layer_id)

    async def _load(self, path):
        if path not in self._collections:
            self._collections[path] = await asyncio.to_thread(load_feature_collection, path)
        return self._collections[path]


def load_feature_collection(path):
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, dict) or data.get('type') != 'FeatureCollection':
        raise ValueError('%s is not a GeoJSON FeatureCollection' % path)
    if not isinstance(data.get('features'), list):
        raise ValueError('%s has no feature list' % path)
    return data


def geometry_bbox(geometry):
    """(xmin, ymin, xmax, ymax) of a GeoJSON geometry, None if it has no coordinates"""
    if not geometry:
        return None
    if geometry.get('type') == 'GeometryCollection':
        boxes = [geometry_bbox(g) for g in geometry.get('geometries', [])]
        boxes = [b for b in boxes if b is not None]
        if not boxes:
            return None
        return (min(b[0] for b in boxes), min(b[1] for b in boxes),
                max(b[2] for b in boxes), max(b[3] for b in boxes))

    xs = []
    ys = []
    _collect_positions(geometry.get('coordinates'), xs, ys)
    if not xs:
        return None
    return min(xs), min(ys), max(xs), max(ys)


def _collect_positions(coords, xs, ys):
    if not coords:
        return
    if isinstance(coords[0], (int, float)):
        xs.append(coords[0])
        ys.append(coords[1])
        return
    for c in coords:
        _collect_positions(c, xs, ys)
