"""Tests for the selection state machine."""

import asyncio
import math

import pytest

from aggregate import AttributeValueCount
from catalog import Extent, Layer
from conftest import ScriptedCatalog
from errors import InvalidInputError
from selection import SelectionState, SelectionStateMachine, Status

X_SERIES = (AttributeValueCount('x-only', 9), )
Y_SERIES = (AttributeValueCount('gravel', 5), AttributeValueCount('paved', 3))


def make_machine(catalog, **kwargs):
    return SelectionStateMachine(catalog, catalog, 400, 300, **kwargs)


async def ready_on_layer(machine, layer_id='roads'):
    await machine.load_layers()
    await machine.select_layer(layer_id)


@pytest.mark.asyncio
async def test_full_sequence_of_states(scripted):
    machine = make_machine(scripted)
    seen = []
    machine.subscribe(seen.append)

    await ready_on_layer(machine)
    await machine.select_attribute('y')

    assert [s.status for s in seen] == [
        Status.LOADING_LAYERS, Status.LAYERS_READY,
        Status.LOADING_ATTRIBUTES, Status.ATTRIBUTES_READY,
        Status.LOADING_STATS, Status.READY,
    ]
    # every transition is a new state object
    assert len(set(map(id, seen))) == len(seen)
    state = machine.state
    assert state.series == Y_SERIES
    assert [n.label for n in state.layout] == ['gravel', 'paved']
    assert (state.layout.width, state.layout.height) == (400, 300)
    assert state.layer == Layer('roads', 'Roads')


@pytest.mark.asyncio
async def test_initial_state_is_idle(scripted):
    machine = make_machine(scripted)
    assert machine.state == SelectionState()
    assert machine.state.status is Status.IDLE


@pytest.mark.asyncio
async def test_identity_field_excluded_case_insensitive():
    catalog = ScriptedCatalog(attributes={'roads': ['objectid', 'Name', 'FID']})
    machine = make_machine(catalog, id_fields=['OBJECTID', 'fid'])
    await ready_on_layer(machine)
    assert machine.state.attributes == ('Name', )


@pytest.mark.asyncio
async def test_select_layer_clears_previous_selection(scripted):
    scripted.layers = [Layer('roads', 'Roads'), Layer('rivers', 'Rivers')]
    scripted.attributes['rivers'] = ['flow']
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    await machine.select_attribute('y')

    await machine.select_layer('rivers')
    state = machine.state
    assert state.status is Status.ATTRIBUTES_READY
    assert state.layer_id == 'rivers'
    assert state.attribute is None
    assert state.series == ()
    assert state.layout is None
    assert state.attributes == ('flow', )


@pytest.mark.asyncio
async def test_stale_stats_response_is_discarded(scripted):
    machine = make_machine(scripted)
    await ready_on_layer(machine)

    gate = scripted.gate('x')
    slow = asyncio.create_task(machine.select_attribute('x'))
    await asyncio.sleep(0)
    assert machine.state.status is Status.LOADING_STATS

    await machine.select_attribute('y')
    assert machine.state.series == Y_SERIES

    gate.set()
    await slow
    state = machine.state
    assert state.status is Status.READY
    assert state.attribute == 'y'
    assert state.series == Y_SERIES


@pytest.mark.asyncio
async def test_stale_failure_is_discarded(scripted):
    scripted.counts[('roads', 'x')] = ConnectionError('timed out')
    machine = make_machine(scripted)
    await ready_on_layer(machine)

    gate = scripted.gate('x')
    slow = asyncio.create_task(machine.select_attribute('x'))
    await asyncio.sleep(0)
    await machine.select_attribute('y')
    gate.set()
    await slow

    assert machine.state.status is Status.READY
    assert machine.state.error is None
    assert machine.state.series == Y_SERIES


@pytest.mark.asyncio
async def test_select_layer_invalidates_stats_in_flight(scripted):
    scripted.layers = [Layer('roads', 'Roads'), Layer('rivers', 'Rivers')]
    scripted.attributes['rivers'] = ['flow']
    machine = make_machine(scripted)
    await ready_on_layer(machine)

    gate = scripted.gate('x')
    slow = asyncio.create_task(machine.select_attribute('x'))
    await asyncio.sleep(0)
    await machine.select_layer('rivers')
    gate.set()
    await slow

    state = machine.state
    assert state.status is Status.ATTRIBUTES_READY
    assert state.layer_id == 'rivers'
    assert state.series == ()


@pytest.mark.asyncio
async def test_stale_attribute_response_is_discarded(scripted):
    scripted.layers = [Layer('roads', 'Roads'), Layer('rivers', 'Rivers')]
    scripted.attributes['rivers'] = ['flow']
    machine = make_machine(scripted)
    await machine.load_layers()

    gate = scripted.gate('roads')
    slow = asyncio.create_task(machine.select_layer('roads'))
    await asyncio.sleep(0)
    await machine.select_layer('rivers')
    gate.set()
    await slow

    assert machine.state.layer_id == 'rivers'
    assert machine.state.attributes == ('flow', )


@pytest.mark.asyncio
async def test_empty_result_is_ready_not_error(scripted):
    scripted.counts[('roads', 'y')] = []
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    await machine.select_attribute('y')

    state = machine.state
    assert state.status is Status.READY
    assert state.is_empty
    assert state.series == ()
    assert len(state.layout) == 0
    assert state.error is None


@pytest.mark.asyncio
async def test_transport_failure_is_error_not_empty(scripted):
    scripted.counts[('roads', 'y')] = ConnectionError('server unavailable')
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    await machine.select_attribute('y')

    state = machine.state
    assert state.status is Status.ERROR
    assert not state.is_empty
    assert 'server unavailable' in state.error
    assert state.layer_id == 'roads'
    assert state.attribute == 'y'


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_chart(scripted):
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    await machine.select_attribute('y')
    layout = machine.state.layout

    scripted.counts[('roads', 'y')] = TimeoutError()
    await machine.refresh()
    assert machine.state.status is Status.ERROR
    assert machine.state.series == Y_SERIES
    assert machine.state.layout is layout

    machine.dismiss_error()
    assert machine.state.status is Status.READY
    assert machine.state.error is None
    assert machine.state.series == Y_SERIES


@pytest.mark.asyncio
async def test_refresh_keeps_chart_while_loading(scripted):
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    await machine.select_attribute('y')

    gate = scripted.gate('y')
    task = asyncio.create_task(machine.refresh())
    await asyncio.sleep(0)
    assert machine.state.status is Status.LOADING_STATS
    assert machine.state.series == Y_SERIES
    gate.set()
    await task
    assert machine.state.status is Status.READY


@pytest.mark.asyncio
async def test_new_attribute_clears_chart_while_loading(scripted):
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    await machine.select_attribute('y')

    gate = scripted.gate('x')
    task = asyncio.create_task(machine.select_attribute('x'))
    await asyncio.sleep(0)
    assert machine.state.series == ()
    assert machine.state.layout is None
    gate.set()
    await task
    assert machine.state.series == X_SERIES


@pytest.mark.asyncio
async def test_refresh_uses_new_spatial_filter(scripted):
    first = Extent(0, 0, 1, 1)
    second = Extent(5, 5, 6, 6)
    machine = make_machine(scripted, spatial_filter=first)
    await ready_on_layer(machine)
    await machine.select_attribute('y')
    await machine.refresh(second)
    machine.set_spatial_filter(first)
    await machine.refresh()

    stats_calls = [c for c in scripted.calls if c[0] == 'stats']
    assert [c[3] for c in stats_calls] == [first, second, first]


@pytest.mark.asyncio
async def test_attributes_failure_is_recoverable(scripted):
    scripted.attributes['roads'] = PermissionError('denied')
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    assert machine.state.status is Status.ERROR
    assert 'attributes query failed' in machine.state.error

    machine.dismiss_error()
    assert machine.state.status is Status.LAYERS_READY

    scripted.attributes['roads'] = ['y']
    await machine.select_layer('roads')
    assert machine.state.status is Status.ATTRIBUTES_READY


@pytest.mark.asyncio
async def test_layer_discovery_failure(scripted):
    scripted.layers = OSError('no map')
    machine = make_machine(scripted)
    await machine.load_layers()
    assert machine.state.status is Status.ERROR
    machine.dismiss_error()
    assert machine.state.status is Status.IDLE


@pytest.mark.asyncio
async def test_no_layers_is_neutral():
    machine = make_machine(ScriptedCatalog(layers=[]))
    await machine.load_layers()
    assert machine.state.status is Status.LAYERS_READY
    assert machine.state.no_layers
    assert machine.state.error is None


@pytest.mark.asyncio
async def test_contract_violations_raise(scripted):
    machine = make_machine(scripted)
    with pytest.raises(InvalidInputError):
        await machine.select_attribute('y')
    with pytest.raises(InvalidInputError):
        await machine.refresh()
    with pytest.raises(InvalidInputError):
        await machine.select_layer('')

    await machine.load_layers()
    with pytest.raises(InvalidInputError):
        await machine.select_layer('nope')

    await machine.select_layer('roads')
    with pytest.raises(InvalidInputError):
        await machine.select_attribute('not-a-field')
    with pytest.raises(InvalidInputError):
        await machine.refresh()


@pytest.mark.asyncio
async def test_negative_count_from_query_is_not_swallowed(scripted):
    scripted.counts[('roads', 'y')] = [{'value': 'a', 'count': -2}]
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    with pytest.raises(InvalidInputError):
        await machine.select_attribute('y')
    # nothing is in flight anymore, so the machine must not look busy
    assert not machine.state.is_loading
    assert machine.state.status is Status.ERROR
    assert 'negative' in machine.state.error
    assert machine.state.attribute == 'y'

    # the failure can be dismissed and another attribute picked
    machine.dismiss_error()
    assert machine.state.status is Status.ATTRIBUTES_READY
    await machine.select_attribute('x')
    assert machine.state.status is Status.READY


@pytest.mark.parametrize('width,height', [(math.nan, 300), (400, math.inf), ('400', 300), (None, 300)])
def test_constructor_rejects_bad_bounds(scripted, width, height):
    with pytest.raises(InvalidInputError):
        SelectionStateMachine(scripted, scripted, width, height)


@pytest.mark.asyncio
async def test_resize_lays_out_again_without_query(scripted):
    machine = make_machine(scripted)
    await ready_on_layer(machine)
    await machine.select_attribute('y')
    calls = len(scripted.calls)

    machine.resize(800, 100)
    layout = machine.state.layout
    assert (layout.width, layout.height) == (800, 100)
    assert sum(n.area for n in layout) == pytest.approx(800 * 100)
    assert len(scripted.calls) == calls

    with pytest.raises(InvalidInputError):
        machine.resize(float('nan'), 100)


@pytest.mark.asyncio
async def test_unsubscribe(scripted):
    machine = make_machine(scripted)
    seen = []
    machine.subscribe(seen.append)
    machine.unsubscribe(seen.append)
    await machine.load_layers()
    assert seen == []
