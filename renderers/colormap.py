colormap = [
    # main       light      dark
    ["#ff7f7f", "#ffbfbf", "#bf7f7f"],
    ["#ffbf7f", "#ffdfbf", "#bf9f5f"],
    ["#ffff00", "#ffffbf", "#bfbf3f"],
    ["#7fff7f", "#bfffbf", "#7fbf7f"],
    ["#7fffff", "#dfffff", "#7fbfbf"],
    ["#bfbfff", "#dfdfff", "#9f9fff"],
    ["#bfbfbf", "#dfdfdf", "#9f9f9f"],
    ["#ff7fff", "#ffbfff", "#bf7fbf"],
]

# status text on an empty canvas
empty_text_color = "#bfbfbf"
error_text_color = "#ff7f7f"


def colors_for(node):
    """(main, light, dark) for a layout node, cycled by series position"""
    return colormap[node.index % len(colormap)]
