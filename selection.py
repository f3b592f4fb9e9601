"""layer -> attribute -> query -> display state machine

every transition builds a new SelectionState and swaps it in whole, so a
listener never sees a half updated state. the two awaits on collaborators
are the only suspension points; their results are applied only if no newer
request of the same kind was issued in the meantime.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from aggregate import AttributeValueCount, aggregate
from catalog import Layer
from errors import InvalidInputError, QueryFailedError
from logger import logger
from subdivide import LayoutResult, check_bounds, compute_rectangles


class Status(enum.Enum):
    IDLE = 'idle'
    LOADING_LAYERS = 'loading-layers'
    LAYERS_READY = 'layers-ready'
    LOADING_ATTRIBUTES = 'loading-attributes'
    ATTRIBUTES_READY = 'attributes-ready'
    LOADING_STATS = 'loading-stats'
    READY = 'ready'
    ERROR = 'error'


LOADING = (Status.LOADING_LAYERS, Status.LOADING_ATTRIBUTES, Status.LOADING_STATS)


@dataclass(frozen=True)
class SelectionState:
    status: Status = Status.IDLE
    layers: Tuple[Layer, ...] = ()
    layer_id: Optional[str] = None
    attributes: Tuple[str, ...] = ()
    attribute: Optional[str] = None
    series: Tuple[AttributeValueCount, ...] = ()
    layout: Optional[LayoutResult] = None
    error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.status in LOADING

    @property
    def is_empty(self) -> bool:
        """query succeeded, nothing matched"""
        return self.status is Status.READY and not self.series

    @property
    def no_layers(self) -> bool:
        return self.status is Status.LAYERS_READY and not self.layers

    @property
    def layer(self) -> Optional[Layer]:
        for layer in self.layers:
            if layer.id == self.layer_id:
                return layer
        return None


class SelectionStateMachine:
    def __init__(self, catalog, stats, width, height, spatial_filter=None,
                 id_fields=('OBJECTID',)):
        check_bounds(width, height)
        self.catalog = catalog
        self.stats = stats
        self.width = width
        self.height = height
        self.spatial_filter = spatial_filter
        self.id_fields = {f.upper() for f in id_fields}
        self._state = SelectionState()
        self._tokens = {'layers': 0, 'attributes': 0, 'stats': 0}
        self._listeners: List[Callable[[SelectionState], None]] = []

    @property
    def state(self) -> SelectionState:
        return self._state

    def subscribe(self, callback):
        self._listeners.append(callback)

    def unsubscribe(self, callback):
        self._listeners.remove(callback)

    def _set_state(self, state):
        if state.status is not self._state.status:
            logger.debug('%s -> %s' % (self._state.status.value, state.status.value))
        self._state = state
        for callback in list(self._listeners):
            callback(state)

    def _issue(self, *kinds):
        for kind in kinds:
            self._tokens[kind] += 1
        return self._tokens[kinds[0]]

    def _is_stale(self, kind, token):
        if token != self._tokens[kind]:
            logger.debug('discarding stale %s response (%d, current %d)' % (kind, token, self._tokens[kind]))
            return True
        return False

    def _settled(self, loading, ready):
        # a later request of another kind may already own the status
        return ready if self._state.status is loading else self._state.status

    def _fail(self, kind, exc):
        err = QueryFailedError.from_exception(kind, exc)
        logger.error(str(err))
        self._set_state(replace(self._state, status=Status.ERROR, error=str(err)))

    async def load_layers(self):
        token = self._issue('layers')
        self._set_state(replace(self._state, status=Status.LOADING_LAYERS, error=None))
        try:
            layers = await self.catalog.list_queryable_layers()
        except Exception as exc:
            if not self._is_stale('layers', token):
                self._fail('layers', exc)
            return

        if self._is_stale('layers', token):
            return
        if not layers:
            logger.info('no queryable layers found')
        self._set_state(replace(self._state, status=self._settled(Status.LOADING_LAYERS, Status.LAYERS_READY),
                                layers=tuple(layers)))

    async def select_layer(self, layer_id):
        if not layer_id:
            raise InvalidInputError('select_layer needs a layer id')
        known = self._state.layers
        if known and layer_id not in [layer.id for layer in known]:
            raise InvalidInputError('unknown layer: %s' % layer_id)

        # a new layer also invalidates any statistics query in flight
        token = self._issue('attributes', 'stats')
        self._set_state(replace(self._state, status=Status.LOADING_ATTRIBUTES,
                                layer_id=layer_id, attributes=(), attribute=None,
                                series=(), layout=None, error=None))
        try:
            fields = await self.catalog.list_attributes(layer_id)
        except Exception as exc:
            if not self._is_stale('attributes', token):
                self._fail('attributes', exc)
            return

        if self._is_stale('attributes', token):
            return
        attributes = tuple(f for f in fields if f.upper() not in self.id_fields)
        self._set_state(replace(self._state, status=self._settled(Status.LOADING_ATTRIBUTES, Status.ATTRIBUTES_READY),
                                attributes=attributes))

    async def select_attribute(self, attribute, spatial_filter=None):
        if not self._state.layer_id:
            raise InvalidInputError('select a layer before an attribute')
        if not attribute:
            raise InvalidInputError('select_attribute needs an attribute name')
        known = self._state.attributes
        if known and attribute not in known:
            raise InvalidInputError('unknown attribute for %s: %s' % (self._state.layer_id, attribute))

        keep = attribute == self._state.attribute
        await self._query(attribute, spatial_filter, keep)

    async def refresh(self, spatial_filter=None):
        """re-run the statistics query, i.e. after the view extent changed"""
        if not self._state.layer_id or not self._state.attribute:
            raise InvalidInputError('refresh needs a selected layer and attribute')
        await self._query(self._state.attribute, spatial_filter, keep=True)

    async def _query(self, attribute, spatial_filter, keep):
        if spatial_filter is not None:
            self.spatial_filter = spatial_filter
        token = self._issue('stats')
        layer_id = self._state.layer_id

        # the old chart stays up during a refresh, but not for another attribute
        if keep:
            loading = replace(self._state, status=Status.LOADING_STATS, attribute=attribute, error=None)
        else:
            loading = replace(self._state, status=Status.LOADING_STATS, attribute=attribute,
                              series=(), layout=None, error=None)
        self._set_state(loading)

        try:
            rows = await self.stats.query_grouped_counts(layer_id, attribute, self.spatial_filter)
        except Exception as exc:
            if not self._is_stale('stats', token):
                self._fail('stats', exc)
            return

        if self._is_stale('stats', token):
            return

        try:
            series = aggregate(rows)
            layout = compute_rectangles(series, self.width, self.height)
        except InvalidInputError as exc:
            # leave the loading state before failing fast, nothing is in flight anymore
            self._set_state(replace(self._state, status=Status.ERROR, error=str(exc)))
            raise
        if not series:
            logger.info('no %s values in the current extent' % attribute)
        self._set_state(replace(self._state, status=Status.READY, series=series,
                                layout=layout, error=None))

    def set_spatial_filter(self, spatial_filter):
        self.spatial_filter = spatial_filter

    def resize(self, width, height):
        """new bounds; lays the current series out again without querying"""
        check_bounds(width, height)
        self.width = width
        self.height = height
        if self._state.layout is not None:
            layout = compute_rectangles(self._state.series, width, height)
            self._set_state(replace(self._state, layout=layout))

    def dismiss_error(self):
        state = self._state
        if state.status is not Status.ERROR:
            return
        if state.layout is not None:
            status = Status.READY
        elif state.attributes:
            status = Status.ATTRIBUTES_READY
        elif state.layers:
            status = Status.LAYERS_READY
        else:
            status = Status.IDLE
        self._set_state(replace(state, status=status, error=None))
