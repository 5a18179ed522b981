"""Console output shared by the installer and the setup command."""

from dataclasses import dataclass

import readchar
from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.text import Text
from rich.tree import Tree

console = Console()

# ASCII Art Banner
BANNER = r"""
$$\                      $$\ $$$$$$$$\
$$ |                     $$ |$$  _____|
$$ |      $$$$$$\   $$$$$$$ |$$ |  $$\   $$\
$$ |     $$  __$$\ $$  __$$ |$$$$$\ $$\ $$  |
$$ |     $$$$$$$$ |$$ /  $$ |$$  __|\$$$$  /
$$ |     $$   ____|$$ |  $$ |$$ |   $$  $$<
$$$$$$$$\\$$$$$$$\ \$$$$$$$  |$$ |  $$  /\$$\
\________|\_______| \_______|\__|  \__/  \__|
"""

TAGLINE = "create-ledfx - LedFx development workspace installer"


def show_banner():
    """Display the ASCII art banner."""
    banner_lines = BANNER.strip("\n").split("\n")
    colors = ["bright_blue", "blue", "cyan", "bright_cyan", "white", "bright_white"]

    styled_banner = Text()
    for i, line in enumerate(banner_lines):
        color = colors[i % len(colors)]
        styled_banner.append(line + "\n", style=color)

    console.print(Align.center(styled_banner))
    console.print(Align.center(Text(TAGLINE, style="italic bright_yellow")))
    console.print()


STEP_SYMBOLS = {
    "pending": "[green dim]○[/green dim]",
    "running": "[cyan]○[/cyan]",
    "done": "[green]●[/green]",
    "error": "[red]●[/red]",
    "skipped": "[yellow]○[/yellow]",
}


@dataclass
class Step:
    label: str
    status: str = "pending"
    detail: str = ""

    def render(self) -> str:
        symbol = STEP_SYMBOLS.get(self.status, " ")
        label = escape(self.label)
        detail = f" ({escape(self.detail.strip())})" if self.detail.strip() else ""
        if self.status == "pending":
            return f"{symbol} [bright_black]{label}{detail}[/bright_black]"
        return f"{symbol} [white]{label}[/white][bright_black]{detail}[/bright_black]"


class StepTracker:
    """Installer steps, in the order they were added, rendered as a rich tree.

    When a refresh callback is attached (usually ``Live.update``), every
    change re-renders the tree.
    """

    def __init__(self, title: str):
        self.title = title
        self.steps: dict[str, Step] = {}
        self._refresh_cb = None

    def attach_refresh(self, cb):
        self._refresh_cb = cb

    def add(self, key: str, label: str):
        if key not in self.steps:
            self.steps[key] = Step(label)
            self._maybe_refresh()

    def start(self, key: str, detail: str = ""):
        self._update(key, "running", detail)

    def complete(self, key: str, detail: str = ""):
        self._update(key, "done", detail)

    def error(self, key: str, detail: str = ""):
        self._update(key, "error", detail)

    def skip(self, key: str, detail: str = ""):
        self._update(key, "skipped", detail)

    def running(self) -> str | None:
        """Key of the first running step, if any."""
        return next((key for key, step in self.steps.items() if step.status == "running"), None)

    def _update(self, key: str, status: str, detail: str):
        step = self.steps.setdefault(key, Step(key))
        step.status = status
        if detail:
            step.detail = detail
        self._maybe_refresh()

    def _maybe_refresh(self):
        if self._refresh_cb:
            self._refresh_cb()

    def render(self) -> Tree:
        tree = Tree(f"[cyan]{escape(self.title)}[/cyan]", guide_style="grey50")
        for step in self.steps.values():
            tree.add(step.render())
        return tree


def get_key():
    """Get a single keypress in a cross-platform way using readchar."""
    key = readchar.readkey()

    if key == readchar.key.UP:
        return 'up'
    if key == readchar.key.DOWN:
        return 'down'

    if key in (readchar.key.ENTER, readchar.key.CR, readchar.key.LF):
        return 'enter'

    if key == readchar.key.SPACE:
        return 'space'

    if key == readchar.key.ESC:
        return 'escape'

    # Ctrl+C
    if key == readchar.key.CTRL_C:
        raise KeyboardInterrupt

    return key
