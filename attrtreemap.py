#!/usr/bin/env python3
"""
attrtreemap [options] path [path ...]
path:     one or more GeoJSON FeatureCollection files, one layer per file
options:  optional
- --layer=TITLE                  # layer to chart; lists layers when missing
- --attribute=NAME               # attribute to chart; lists attributes when missing
- --extent=XMIN,YMIN,XMAX,YMAX   # only count features intersecting this box
- --renderer=svg|mpl|tk|text     # default from config
- --output=FILE                  # svg/mpl output file
- --width=N --height=N           # treemap size in pixels
- --config=FILE                  # config file, default ~/.config/attrtreemap.json
- --save                         # archive the counts
- --file=FILE                    # render archived counts instead of querying
- --file                         # automatically load most recent archive
- -v                             # more logging, repeat for more
"""
import argparse
import asyncio
import copy
import glob
import json
import os
import socket
import sys
from datetime import datetime as dt

from aggregate import dict_to_series, print_series, series_to_dict, total
from catalog import Extent, GeoJSONCatalog
from errors import InvalidInputError
from logger import logger, set_verbosity
from selection import SelectionStateMachine, Status
from subdivide import compute_rectangles
from utils import format_count

CONFIG_FILE_PATH = os.path.expanduser('~/.config/attrtreemap.json')

NOW = dt.strftime(dt.now(), '%Y%m%d-%H%M%S')
HOST = os.getenv('MACHINE', socket.gethostname())

RENDERERS = ['svg', 'mpl', 'tk', 'text']

DEFAULT_CONFIG = {
    'width': 1200,
    'height': 800,
    'renderer': 'svg',
    # identity fields are never offered as attributes
    'id-fields': ['OBJECTID', 'FID'],
    'archive-base-path': '~/.attrtreemap',
    'archive-name-pattern': '%host-%layer-%attribute-%timestamp.json',
    'svg-renderer': {
        'filename': 'treemap.svg',
        'max-rectangles': 1000,
        'text-size': 8,
    },
    'mpl-renderer': {
        'filename': None,
        'dpi': 100,
        'text-size': 8,
    },
    'tk-renderer': {
        'text-size': 8,
        'keyboard': {
            'r': 'refresh',
            'escape': 'dismiss_error',
            'c': 'copy_label',
            'i': 'info',
            'q': 'quit',
        },
        'mouse': {
            '1': 'info',
            '3': 'context_menu',
        },
    },
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    set_verbosity(args.verbose)

    try:
        config = parse_config(args.config)
    except (OSError, ValueError) as exc:
        logger.error('bad config file: %s' % exc)
        return 2
    apply_flags(config, args)

    if args.file is not None:
        return render_archive(args, config)

    if not args.paths:
        parser.print_usage()
        logger.error('no layer files given')
        return 2

    extent = None
    if args.extent:
        try:
            extent = Extent.parse(args.extent)
        except ValueError as exc:
            logger.error('bad extent: %s' % exc)
            return 2

    catalog = GeoJSONCatalog(args.paths)
    try:
        machine = SelectionStateMachine(catalog, catalog, config['width'], config['height'],
                                        spatial_filter=extent, id_fields=config['id-fields'])
        code = asyncio.run(select(machine, args.layer, args.attribute))
    except InvalidInputError as exc:
        logger.error(str(exc))
        return 2
    if code is not None:
        return code

    state = machine.state
    layer = state.layer
    logger.info('%s / %s: %d values, %s features' % (
        layer.title, state.attribute, len(state.series), format_count(total(state.series))))

    if args.save:
        data = {
            'layer': layer.title,
            'attribute': state.attribute,
            'extent': list(extent) if extent else None,
            'series': series_to_dict(state.series),
            'host': HOST,
            'timestamp': NOW,
        }
        save_archive(get_archive_location(config, layer.title, state.attribute, HOST, NOW), data)

    title = '%s: %s' % (layer.title, state.attribute)
    if config['renderer'] == 'tk':
        from renderers.tk import render_class
        render_class(machine, config, title=title)
        return 0

    render_layout(state.layout, state.series, config, title)
    return 0


async def select(machine, layer_title, attribute):
    """drive the state machine up to Ready

    returns an exit code when there is nothing to render (listing, error),
    None when the machine holds a layout
    """
    await machine.load_layers()
    state = machine.state
    if state.status is Status.ERROR:
        return 1
    if state.no_layers:
        print('no queryable layers found')
        return 0

    if not layer_title:
        print('layers:')
        for layer in state.layers:
            print('  %s' % layer.title)
        return 0

    matches = [x for x in state.layers if layer_title in (x.title, x.id)]
    if not matches:
        raise InvalidInputError('no layer titled %r' % layer_title)
    await machine.select_layer(matches[0].id)
    state = machine.state
    if state.status is Status.ERROR:
        return 1

    if not attribute:
        print('attributes of %s:' % matches[0].title)
        for name in state.attributes:
            print('  %s' % name)
        return 0

    await machine.select_attribute(attribute)
    if machine.state.status is Status.ERROR:
        return 1
    return None


def render_layout(layout, series, config, title):
    renderer = config['renderer']
    if renderer == 'text':
        print(title)
        print_series(series)
    elif renderer == 'svg':
        from renderers.svg import render
        render(layout, config)
    elif renderer == 'mpl':
        from renderers.mpl import render
        render(layout, config, title=title)
    else:
        raise InvalidInputError('unknown renderer: %s' % renderer)


def render_archive(args, config):
    archive_path = os.path.expanduser(config['archive-base-path'])
    fname = args.file
    if fname == '':
        fname = get_latest_file(archive_path)
        if not fname:
            logger.error('no archives in %s' % archive_path)
            return 1
        ts = dt.fromtimestamp(os.stat(fname).st_mtime).strftime('%Y-%m-%d %H:%M:%S')
        logger.info('using latest archive (%s): %s' % (ts, fname))

    if config['renderer'] == 'tk':
        logger.error('the tk renderer needs live layers, use svg, mpl or text with --file')
        return 2

    try:
        with open(fname, 'r') as f:
            data = json.load(f)
        series = dict_to_series(data['series'])
    except (OSError, ValueError, KeyError) as exc:
        logger.error('could not load %s: %s' % (fname, exc))
        return 1

    layout = compute_rectangles(series, config['width'], config['height'])
    title = '%s: %s' % (data.get('layer', '?'), data.get('attribute', '?'))
    render_layout(layout, series, config, title)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog='attrtreemap',
        description='treemap of attribute value frequencies for the features in view')
    parser.add_argument('paths', nargs='*', help='GeoJSON FeatureCollection files')
    parser.add_argument('--layer', help='layer title')
    parser.add_argument('--attribute', help='attribute name')
    parser.add_argument('--extent', help='XMIN,YMIN,XMAX,YMAX')
    parser.add_argument('--renderer', choices=RENDERERS)
    parser.add_argument('-o', '--output', help='output file for svg/mpl renderers')
    parser.add_argument('--width', type=int)
    parser.add_argument('--height', type=int)
    parser.add_argument('--config', help='config file (default %s)' % CONFIG_FILE_PATH)
    parser.add_argument('--save', action='store_true', help='archive the counts')
    parser.add_argument('-f', '--file', nargs='?', const='',
                        help='render an archive instead of querying (latest if no FILE)')
    parser.add_argument('-v', '--verbose', action='count', default=0)
    return parser


def parse_config(path=None):
    """defaults, updated with the config file when there is one"""
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path is None:
        path = CONFIG_FILE_PATH
        if not os.path.exists(path):
            return config
    logger.debug('using config file: %s' % path)
    with open(path) as f:
        user_config = json.load(f)
    if not isinstance(user_config, dict):
        raise ValueError('%s does not hold a JSON object' % path)
    return merge_config(config, user_config)


def merge_config(base, override):
    # nested sections are merged key by key, everything else replaced
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            merge_config(base[k], v)
        else:
            base[k] = v
    return base


def apply_flags(config, args):
    if args.renderer:
        config['renderer'] = args.renderer
    if args.width is not None:
        config['width'] = args.width
    if args.height is not None:
        config['height'] = args.height
    if args.output:
        config['svg-renderer']['filename'] = args.output
        config['mpl-renderer']['filename'] = args.output
    for k in ('renderer', 'width', 'height'):
        logger.debug('  %s: %s' % (k, config[k]))
    return config


def get_archive_location(config, layer_title, attribute, host, timestamp):
    pattern = config.get('archive-name-pattern', '')
    if not pattern:
        return ''

    def slug(s):
        return str(s).strip().replace('/', '-').replace(' ', '-')

    archive_basename = pattern
    archive_basename = archive_basename.replace('%host', slug(host))
    archive_basename = archive_basename.replace('%layer', slug(layer_title))
    archive_basename = archive_basename.replace('%attribute', slug(attribute))
    archive_basename = archive_basename.replace('%timestamp', timestamp)

    return os.path.join(os.path.expanduser(config['archive-base-path']), archive_basename)


def save_archive(archive_filename, data):
    if not archive_filename:
        logger.warning('no archive-name-pattern configured, not saving')
        return
    logger.info('archiving results to:\n  %s' % archive_filename)
    try:
        os.makedirs(os.path.dirname(archive_filename), exist_ok=True)
        with open(archive_filename, 'w') as f:
            json.dump(data, f)
    except OSError as exc:
        logger.error('archiving failed: %s' % exc)


def get_latest_file(archive_path):
    glb = glob.glob(os.path.join(archive_path, '*.json'))
    if glb:
        files_ages = [(x, os.stat(x).st_mtime) for x in glb]
        files_ages.sort(key=lambda x: -x[1])
        return files_ages[0][0]

    return ''


def cli():
    sys.exit(main())


if __name__ == '__main__':
    cli()
