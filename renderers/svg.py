"""
Basic static SVG renderer for attribute treemaps.

Generates a self-contained SVG file with rectangles and labels only —
no interactivity, no JavaScript.
"""

import html

from logger import logger
from subdivide import LayoutResult
from .colormap import colors_for, empty_text_color


def render(layout, config):
    """
    Write a static SVG treemap.

    Args:
        layout: LayoutResult to draw
        config: Configuration dictionary, uses the 'svg-renderer' section:
            filename: Where to save the SVG file
            max-rectangles: Maximum number of rectangles to draw (default 1000)
            text-size: Label font size in pixels (default 8)
    """
    svg_params = config.get('svg-renderer', {})
    max_rects = svg_params.get('max-rectangles', 1000)
    text_size = svg_params.get('text-size', 8)
    output_path = svg_params.get('filename', 'treemap.svg')

    if len(layout) > max_rects:
        logger.warning('drawing the %d largest of %d rectangles' % (max_rects, len(layout)))
        layout = cull(layout, max_rects)

    svg_content = generate_svg(layout, text_size=text_size)

    with open(output_path, 'w') as f:
        f.write(svg_content)

    logger.info(f'SVG saved to: {output_path}')
    return output_path


def cull(layout, max_rects):
    """keep the max_rects largest nodes, in their original order"""
    keep = sorted(layout, key=lambda n: -n.area)[:max_rects]
    keep = set(n.index for n in keep)
    return LayoutResult([n for n in layout if n.index in keep], layout.width, layout.height)


def generate_svg(layout, text_size=8, empty_message='no data'):
    """Generate a static SVG document with rectangles and text labels."""
    width = layout.width
    height = layout.height
    clip_defs, body = render_rects(layout)
    if not len(layout):
        body = (f'  <text x="{width / 2}" y="{height / 2}" text-anchor="middle"'
                f' dominant-baseline="middle" style="fill: {empty_text_color};">'
                f'{html.escape(empty_message)}</text>')

    return f'''<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg"
     width="{width}" height="{height}" viewBox="0 0 {width} {height}"
     style="background-color: #000000;">
  <defs>
    <style type="text/css">
      rect {{ stroke: #000000; stroke-width: 1; }}
      text {{
        font-family: Helvetica, Arial, sans-serif;
        font-size: {text_size}px;
        fill: #000000;
        pointer-events: none;
      }}
    </style>
{clip_defs}
  </defs>
{body}
</svg>'''


def render_rects(layout):
    """Render layout nodes to SVG elements.

    Returns (clip_defs, body) where clip_defs is a string of <clipPath>
    elements for <defs>, and body is the SVG shape/text elements.
    """
    clip_parts = []
    body_parts = []

    for i, node in enumerate(layout):
        cs = colors_for(node)

        x = node.x0
        y = node.y0
        dx = node.dx
        dy = node.dy

        # ClipPath matching this rect's bounds (1px inset to stay inside stroke)
        clip_id = f'c{i}'
        clip_parts.append(
            f'    <clipPath id="{clip_id}">'
            f'<rect x="{x+1}" y="{y+1}" width="{max(0, dx-2)}" height="{max(0, dy-2)}"/>'
            f'</clipPath>'
        )

        body_parts.append(
            f'  <rect x="{x}" y="{y}" width="{dx}" height="{dy}" fill="{cs[0]}"/>'
        )

        # Highlight lines (top/left lighter, bottom/right darker)
        body_parts.append(
            f'  <line x1="{x+1}" y1="{y+dy-1}" x2="{x+1}" y2="{y+1}" stroke="{cs[1]}" stroke-width="1"/>'
        )
        body_parts.append(
            f'  <line x1="{x+1}" y1="{y+1}" x2="{x+dx-1}" y2="{y+1}" stroke="{cs[1]}" stroke-width="1"/>'
        )
        body_parts.append(
            f'  <line x1="{x+1}" y1="{y+dy-1}" x2="{x+dx-1}" y2="{y+dy-1}" stroke="{cs[2]}" stroke-width="1"/>'
        )
        body_parts.append(
            f'  <line x1="{x+dx-1}" y1="{y+dy-1}" x2="{x+dx-1}" y2="{y+1}" stroke="{cs[2]}" stroke-width="1"/>'
        )

        # Label centered; clipPath trims whatever doesn't fit
        text = html.escape(node.text)
        body_parts.append(
            f'  <text x="{x + dx / 2}" y="{y + dy / 2}" text-anchor="middle"'
            f' dominant-baseline="middle" clip-path="url(#{clip_id})">{text}</text>'
        )

    return '\n'.join(clip_parts), '\n'.join(body_parts)
