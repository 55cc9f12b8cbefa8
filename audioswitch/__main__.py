# audioswitch/__main__.py
# `python -m audioswitch` behaves like the installed console script and the
# built EXE: all three forward into audioswitch.cli.main.

from .cli import main

if __name__ == "__main__":
    import sys
    sys.exit(main())
