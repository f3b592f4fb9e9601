"""Shared fixtures: GeoJSON layers on disk and a scriptable in-memory catalog."""

import asyncio
import json

import matplotlib
import pytest

from catalog import Layer, LayerCatalog, StatisticsQueryAdapter

matplotlib.use('Agg')


def point(x, y, **properties):
    return {
        'type': 'Feature',
        'geometry': {'type': 'Point', 'coordinates': [x, y]},
        'properties': properties,
    }


def write_collection(path, features, name=None):
    data = {'type': 'FeatureCollection', 'features': features}
    if name is not None:
        data['name'] = name
    path.write_text(json.dumps(data))
    return str(path)


@pytest.fixture
def parcels_path(tmp_path):
    features = [
        point(0, 0, OBJECTID=1, zoning='R1', owner='city'),
        point(1, 1, OBJECTID=2, zoning='R1', owner='private'),
        point(2, 2, OBJECTID=3, zoning='C', owner='private'),
        point(10, 10, OBJECTID=4, zoning='R1', owner='private'),
        point(11, 11, OBJECTID=5, zoning='M', owner='city'),
        point(1, 0, OBJECTID=6, owner='private'),
        point(0, 1, OBJECTID=7, zoning='', owner='state'),
    ]
    return write_collection(tmp_path / 'parcels.geojson', features, name='parcels')


@pytest.fixture
def roads_path(tmp_path):
    features = [
        {
            'type': 'Feature',
            'geometry': {'type': 'LineString', 'coordinates': [[0, 0], [5, 5]]},
            'properties': {'FID': 1, 'surface': 'paved'},
        },
        {
            'type': 'Feature',
            'geometry': {'type': 'LineString', 'coordinates': [[20, 20], [30, 20]]},
            'properties': {'FID': 2, 'surface': 'gravel'},
        },
    ]
    return write_collection(tmp_path / 'roads.geojson', features)


class ScriptedCatalog(LayerCatalog, StatisticsQueryAdapter):
    """answers from dicts; a query for an attribute with a gate waits until it is set"""

    def __init__(self, layers=None, attributes=None, counts=None):
        self.layers = layers if layers is not None else [Layer('roads', 'Roads')]
        self.attributes = attributes if attributes is not None else {
            'roads': ['OBJECTID', 'x', 'y']}
        self.counts = counts if counts is not None else {}
        self.gates = {}
        self.calls = []

    async def list_queryable_layers(self):
        self.calls.append(('layers', ))
        if isinstance(self.layers, Exception):
            raise self.layers
        return list(self.layers)

    async def list_attributes(self, layer_id):
        self.calls.append(('attributes', layer_id))
        gate = self.gates.get(layer_id)
        if gate is not None:
            await gate.wait()
        result = self.attributes[layer_id]
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def query_grouped_counts(self, layer_id, attribute, spatial_filter):
        self.calls.append(('stats', layer_id, attribute, spatial_filter))
        gate = self.gates.get(attribute)
        if gate is not None:
            await gate.wait()
        result = self.counts[(layer_id, attribute)]
        if isinstance(result, Exception):
            raise result
        return list(result)

    def gate(self, key):
        self.gates[key] = asyncio.Event()
        return self.gates[key]


@pytest.fixture
def scripted():
    return ScriptedCatalog(counts={
        ('roads', 'x'): [{'value': 'x-only', 'count': 9}],
        ('roads', 'y'): [{'value': 'paved', 'count': 3}, {'value': 'gravel', 'count': 5}],
    })
