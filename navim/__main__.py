"""navim CLI entry point.

Allows running via `python -m navim` and provides the console script
defined in `pyproject.toml`.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from .version import get_version_string

USAGE = """\
usage: navim [--width N] [--save] [--log FILE] TARGET
       navim --width N --save
       navim --history
       navim --clear-history
       navim --keytest
       navim --version

TARGET is a local HTML file path or file:// URL.
--save stores the effective settings in the config file."""


def _escape_bytes(s: str) -> str:
    """Return a printable representation of raw key string."""
    return s.encode('unicode_escape').decode('ascii')


def run_keyboard_test() -> None:
    """Print the parsed event for each key pressed. Quit with ESC."""
    from .terminal import TerminalInterface
    from .keyboard import KeyboardHandler, KeyEvent, KeyType

    print("Keyboard test mode - press keys to see parsed events.")
    print("Quit with ESC.")

    term = TerminalInterface()
    term.setup()
    kb = KeyboardHandler(term)
    try:
        while True:
            ev: KeyEvent | None = kb.get_key_event(timeout=None)
            if not ev:
                continue
            if ev.key_type == KeyType.SPECIAL and ev.value == 'escape':
                print("Exiting keyboard test.")
                break
            parts = [f"type={ev.key_type.value}", f"value={ev.value}", f"raw='{_escape_bytes(ev.raw)}'"]
            flags = [name for name, on in (('alt', ev.is_alt), ('ctrl', ev.is_ctrl),
                                           ('shift', ev.is_shift), ('seq', ev.is_sequence)) if on]
            if flags:
                parts.append(f"flags={'+'.join(flags)}")
            print(' '.join(parts))
    finally:
        term.cleanup()


class UsageError(Exception):
    pass


def parse_args(args: list[str]) -> dict:
    """Parse the command line into an options dict.

    Raises:
        UsageError: unknown option, missing or invalid option value.
    """
    options: dict = {'width': None, 'log': None, 'target': None, 'mode': 'view', 'save': False}
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ('--version', '-V'):
            options['mode'] = 'version'
        elif arg in ('--keytest', '--keyboard-test'):
            options['mode'] = 'keytest'
        elif arg == '--history':
            options['mode'] = 'history'
        elif arg == '--clear-history':
            options['mode'] = 'clear-history'
        elif arg == '--save':
            options['save'] = True
        elif arg in ('--help', '-h'):
            options['mode'] = 'help'
        elif arg in ('--width', '--log'):
            if i + 1 >= len(args):
                raise UsageError(f"{arg} needs a value")
            i += 1
            if arg == '--log':
                options['log'] = args[i]
            else:
                try:
                    options['width'] = int(args[i])
                except ValueError:
                    raise UsageError(f"--width must be a number, got {args[i]!r}") from None
        elif arg.startswith('-') and arg != '-':
            raise UsageError(f"unknown option {arg}")
        elif options['target'] is None:
            options['target'] = arg
        else:
            raise UsageError("only one TARGET may be given")
        i += 1
    if options['mode'] == 'view' and options['target'] is None and not options['save']:
        raise UsageError("no TARGET given")
    return options


def configure_logging(path: Optional[str]) -> None:
    """Send log records to ``path``; without one, logging stays silent.

    A full-screen terminal UI must never write log lines to the screen.
    """
    if path is None:
        logging.getLogger().addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        filename=path,
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[list[str]] = None) -> int:
    try:
        options = parse_args(sys.argv[1:] if argv is None else argv)
    except UsageError as e:
        print(f"navim: {e}\n\n{USAGE}", file=sys.stderr)
        return 2

    mode = options['mode']
    if mode == 'version':
        print(get_version_string())
        return 0
    if mode == 'help':
        print(USAGE)
        return 0
    if mode == 'keytest':
        run_keyboard_test()
        return 0

    configure_logging(options['log'])

    # Lazy import to avoid importing UI deps for --version
    from .constants import ViewerConstants
    from .history import History, history_page
    from .markup import from_html
    from .settings import load_settings, save_settings, settings_file, validate_setting
    from .viewer import Viewer

    history = History()
    if mode == 'clear-history':
        if not history.clear():
            print(f"navim: could not clear {history.path}", file=sys.stderr)
            return 1
        print(ViewerConstants.HISTORY_CLEARED_MESSAGE)
        return 0

    settings = load_settings()
    if options['width'] is not None:
        if not validate_setting('width', options['width']):
            print(f"navim: --width must be between {ViewerConstants.MIN_WIDTH} and "
                  f"{ViewerConstants.MAX_WIDTH}", file=sys.stderr)
            return 2
        settings.width = options['width']
    if options['save']:
        if not save_settings(settings):
            print(f"navim: could not save settings to {settings_file()}", file=sys.stderr)
            return 1
        if mode == 'view' and options['target'] is None:
            print(f"Saved settings to {settings_file()}")
            return 0

    viewer = Viewer(settings, history)
    if mode == 'history':
        entries = history.entries()
        if not entries:
            print(ViewerConstants.NO_HISTORY_MESSAGE)
            return 0
        viewer.open_tree(from_html(history_page(entries)), "navim:history")
    else:
        # An unreadable first page is reported before the screen is taken over
        viewer.open(options['target'])
        result = viewer.loader.wait()
        if not result.ok:
            print(f"navim: {result.error}", file=sys.stderr)
            return 1
        viewer.handle_load_result(result)
    viewer.run()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
