"""Entry point for `python -m themeengine`."""

import sys


def main():
    from themeengine.app import run_app
    sys.exit(run_app())


if __name__ == "__main__":
    main()
