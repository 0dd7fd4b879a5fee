"""
Focus, selection and scroll state for the two panels.

The navigator never looks at the lists themselves, only at their lengths,
which the monitor pushes in through ``list_resized`` after every tick.
A selection of -1 means the focused list is empty.
"""

ACTIVE = "active"
HISTORY = "history"


class Navigator:
    def __init__(self, viewport=10, page_size=10):
        self.focus = ACTIVE
        self.selected = 0
        self.offset = 0
        self.viewport = max(1, viewport)
        self.page_size = max(1, page_size)
        self.lengths = {ACTIVE: 0, HISTORY: 0}

    @property
    def focused_len(self):
        return self.lengths[self.focus]

    def _clamp(self):
        n = self.focused_len
        if n == 0:
            self.selected = -1
            self.offset = 0
            return
        if self.selected < 0:
            self.selected = 0
        elif self.selected > n - 1:
            self.selected = n - 1
        # smallest move that brings the selection back into the window
        if self.selected < self.offset:
            self.offset = self.selected
        elif self.selected >= self.offset + self.viewport:
            self.offset = self.selected - self.viewport + 1
        self.offset = max(0, min(self.offset, n - self.viewport))

    def _move(self, delta):
        if self.focused_len == 0:
            return
        self.selected += delta
        self._clamp()

    def move_up(self):
        self._move(-1)

    def move_down(self):
        self._move(1)

    def page_up(self):
        self._move(-self.page_size)

    def page_down(self):
        self._move(self.page_size)

    def switch_focus(self):
        self.focus = HISTORY if self.focus == ACTIVE else ACTIVE
        self._clamp()

    def list_resized(self, panel, new_len):
        self.lengths[panel] = max(0, new_len)
        if panel == self.focus:
            self._clamp()

    def set_viewport(self, rows):
        self.viewport = max(1, rows)
        self._clamp()

    def state(self):
        return self.focus, self.selected, self.offset
