import asyncio
import queue
import threading

import tkinter as tk

from errors import InvalidInputError, TreemapError
from logger import logger
from selection import Status
from utils import shorten
from .colormap import colors_for, empty_text_color, error_text_color

POLL_MS = 50


class BackgroundLoop(object):
    """asyncio event loop running on a daemon thread

    the tk mainloop owns the main thread, so catalog and statistics calls
    are awaited here and never block redraws or key handling.
    """

    def __init__(self, name='attrtreemap-loop'):
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, name=name, daemon=True)

    def start(self):
        self.thread.start()
        return self

    def submit(self, coro):
        """schedule a coroutine, returns a concurrent.futures.Future right away"""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        future.add_done_callback(_log_failure)
        return future

    def call(self, func, *args):
        self.loop.call_soon_threadsafe(func, *args)

    def stop(self, timeout=5):
        if self.loop.is_closed():
            return
        if self.thread.is_alive():
            self.loop.call_soon_threadsafe(self.loop.stop)
            self.thread.join(timeout)
        if not self.thread.is_alive():
            self.loop.close()


def _log_failure(future):
    if future.cancelled():
        return
    exc = future.exception()
    if isinstance(exc, InvalidInputError):
        logger.warning(str(exc))
    elif isinstance(exc, TreemapError):
        logger.error(str(exc))
    elif exc is not None:
        logger.error('background task failed: %r' % exc)


class TreemapApp(object):
    """tk window that follows a SelectionStateMachine

    the canvas is redrawn on every new state; a resize lays the current
    series out again, 'r' re-runs the statistics query for the view.
    the machine lives on a BackgroundLoop: states arrive on that thread
    and are handed to the tk thread through a queue.
    """

    def __init__(self, master, title, machine, config, background, width=None, height=None):
        self.config = config
        self.params = config['tk-renderer']
        self.action_map_mouse = self._parse_keycombos(self.params['mouse'])
        self.action_map_keyboard = self._parse_keycombos(self.params['keyboard'])

        self.machine = machine
        self.background = background
        self.states = queue.Queue()
        self.background.call(self.machine.subscribe, self._on_state)

        self.master = master
        self.frame = tk.Frame(self.master)
        screen_width = master.winfo_screenwidth()
        screen_height = master.winfo_screenheight()
        width = width or machine.width or screen_width / 2
        height = height or machine.height or screen_height / 2
        self.width = width
        self.height = height

        x = (screen_width / 2) - (width / 2)  # default window x position (centered)
        y = (screen_height / 2) - (height / 2)  # default window y position (centered)
        master.geometry('%dx%d+%d+%d' % (width, height, x, y))
        master.title(title)

        self.canv = tk.Canvas(master, bg='black')
        self.canv.pack(expand=True, fill=tk.BOTH)
        self.master.bind("<KeyRelease>", self._on_keyup)
        self.canv.bind("<Configure>", self._on_resize)
        self.canv.bind("<Button>", self._on_click)
        self.frame.pack()

        self._print_usage()
        self.master.after(POLL_MS, self._poll_states)

    def _parse_keycombos(self, cnf):
        res = {}
        for k, v in cnf.items():
            if '+' in k:
                k = k.split('+')
            else:
                k = [k]
            res[tuple(k)] = v
        return res

    def _print_usage(self):
        print('UI usage:')
        for mouse_button, action_func_name in sorted(self.action_map_mouse.items()):
            print('  mouse<%s>: %s' % ('+'.join(mouse_button), action_func_name))
        for key, action_func_name in sorted(self.action_map_keyboard.items()):
            print('  "%s": %s' % ('+'.join(key), action_func_name))

    def _on_state(self, state):
        # loop thread; tk calls are only made from _poll_states
        self.states.put(state)

    def _poll_states(self):
        state = None
        while True:
            try:
                state = self.states.get_nowait()
            except queue.Empty:
                break
        if state is not None:
            self._render(state)
        self.master.after(POLL_MS, self._poll_states)

    def _render(self, state=None):
        state = state or self.machine.state
        self.canv.delete('all')
        logger.gui_info('rendering %s %dx%d' % (state.status.value, self.width, self.height))

        if state.status is Status.ERROR:
            self._render_message('%s\n(r: retry, escape: dismiss)' % state.error, error_text_color)
            return
        if state.is_loading and state.layout is None:
            self._render_message('loading...', empty_text_color)
            return
        if state.layout is None:
            self._render_message('select a layer and attribute', empty_text_color)
            return
        if not len(state.layout):
            self._render_message('no data', empty_text_color)
            return

        for node in state.layout:
            self._render_rect(node)

    def _render_message(self, text, color):
        self.canv.create_text(self.width / 2, self.height / 2, text=text, fill=color,
                              anchor=tk.CENTER, justify=tk.CENTER,
                              font=("Helvetica", self.params['text-size'] + 4))

    def _render_rect(self, node):
        x = node.x0
        y = node.y0
        dx = node.dx
        dy = node.dy
        cs = colors_for(node)

        self.canv.create_rectangle(x, y, x+dx, y+dy, width=1, fill=cs[0], outline='black')
        self.canv.create_line(x+1, y+dy-1, x+1, y+1, x+dx-1, y+1, fill=cs[1])
        self.canv.create_line(x+1, y+dy-1, x+dx-1, y+dy-1, x+dx-1, y+1, fill=cs[2])

        clipped_text = shorten(node.text, dx, self.params['text-size'])
        self.canv.create_text(x + dx / 2, y + dy / 2, text=clipped_text, fill="black",
                              anchor=tk.CENTER, font=("Helvetica", self.params['text-size']))

    def _find_node(self, x, y):
        layout = self.machine.state.layout
        if layout is None:
            return None
        return layout.find(x, y)

    def _on_resize(self, ev):
        logger.gui_info('resized: %d %d' % (ev.width, ev.height))
        self.width, self.height = ev.width, ev.height
        # the redraw comes back through _on_state
        self.background.call(self._resize_machine, ev.width, ev.height)
        if self.machine.state.layout is None:
            self._render()

    def _resize_machine(self, width, height):
        try:
            self.machine.resize(width, height)
        except InvalidInputError as exc:
            logger.warning(str(exc))

    def _modifiers(self, ev):
        s = ev.state
        modifiers = []
        if (s & 0x1):
            modifiers.append('shift')
        if (s & 0x4):
            modifiers.append('ctrl')
        if (s & 0x88):
            modifiers.append('alt')
        return modifiers

    def _on_click(self, ev):
        combo = tuple(self._modifiers(ev) + [str(ev.num)])
        logger.gui_info('mouse<%d> %s' % (ev.num, combo))
        self._dispatch(self.action_map_mouse, combo, ev)

    def _on_keyup(self, ev):
        combo = tuple(self._modifiers(ev) + [ev.keysym.lower()])
        logger.gui_info('keyup: "%s" (%s)' % (ev.keysym, combo))
        self._dispatch(self.action_map_keyboard, combo, ev)

    def _dispatch(self, action_map, combo, ev):
        action_func_name = action_map.get(combo, '')
        if action_func_name == '':
            logger.gui_info('  event %s: no action defined' % (combo, ))
            return
        action_func = getattr(self, action_func_name)
        action_func(ev)

    def info(self, ev):
        node = self._find_node(ev.x, ev.y)
        if node is None:
            return
        state = self.machine.state
        print('%s = %s: %d features (%.1f%% of area)' % (
            state.attribute, node.label, node.value,
            100.0 * node.area / (self.width * self.height)))

    def copy_label(self, ev):
        node = self._find_node(ev.x, ev.y)
        if node is None:
            return
        self.master.clipboard_clear()
        self.master.clipboard_append(node.label)
        print('copied: %s' % node.label)

    def refresh(self, ev):
        self.background.submit(self.machine.refresh())

    def dismiss_error(self, ev):
        self.background.call(self.machine.dismiss_error)

    def context_menu(self, ev):
        m = tk.Menu(self.master, tearoff=0)
        m.add_command(label="Info (i)", command=lambda: self.info(ev))
        m.add_command(label="Copy label (c)", command=lambda: self.copy_label(ev))
        m.add_command(label="Refresh (r)", command=lambda: self.refresh(ev))
        try:
            m.tk_popup(ev.x_root, ev.y_root)
        finally:
            m.grab_release()

    def quit(self, ev):
        self.background.call(self.machine.unsubscribe, self._on_state)
        self.master.quit()


def render_class(machine, config, title=''):
    background = BackgroundLoop().start()
    try:
        root = tk.Tk()
        TreemapApp(root, title, machine, config, background)
        root.mainloop()
    finally:
        background.stop()
