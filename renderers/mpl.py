import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle

from logger import logger
from .colormap import colors_for, empty_text_color


def render(layout, config, title=None):
    """draw the layout with matplotlib; save to the configured file, or show"""
    params = config.get('mpl-renderer', {})
    dpi = params.get('dpi', 100)
    filename = params.get('filename')

    width = max(layout.width, 1)
    height = max(layout.height, 1)
    fig, ax = plt.subplots(figsize=(width / dpi, height / dpi), dpi=dpi)
    ax.set_xlim(0, width)
    # screen coordinates, y grows downward like the other renderers
    ax.set_ylim(height, 0)
    ax.set_axis_off()
    if title:
        ax.set_title(title)

    for node in layout:
        cs = colors_for(node)
        ax.add_patch(Rectangle((node.x0, node.y0), node.dx, node.dy,
                               facecolor=cs[0], edgecolor='black', linewidth=1))
        ax.text(node.x0 + node.dx / 2, node.y0 + node.dy / 2, node.text,
                ha='center', va='center', fontsize=params.get('text-size', 8),
                clip_on=True)

    if not len(layout):
        ax.text(width / 2, height / 2, 'no data', ha='center', va='center',
                color=empty_text_color)

    if filename:
        fig.savefig(filename)
        plt.close(fig)
        logger.info('figure saved to: %s' % filename)
        return filename

    plt.show()
    return None
