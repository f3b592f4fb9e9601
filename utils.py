_abbrevs = [(10 ** 12, 'T'),
            (10 ** 9, 'G'),
            (10 ** 6, 'M'),
            (10 ** 3, 'k'),
            (1, '')
            ]


def format_count(count):
    """Return a short human readable count (i.e., 12.3k, 4.5M)"""
    k = 10.0
    # the jump occurs at 10k instead of 1k, so small counts stay exact
    for factor, suffix in _abbrevs:
        if count >= k * factor:
            break
    if factor == 1:
        return '%d' % count
    return '%.1f%s' % (count / (1.0 * factor), suffix)


def shorten(string, dx, text_size):
    """ should shorten a string to fit in length dx pixels """
    # http://stackoverflow.com/questions/1123463/clipping-text-in-python-tkinter

    if (len(string) - 5) * text_size > dx:
        new_len = int(dx / text_size) + 5
        string = string[0:new_len - 1]

    return string
