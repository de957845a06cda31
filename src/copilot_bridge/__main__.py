"""Module entrypoint for `python -m copilot_bridge`."""

from __future__ import annotations

from copilot_bridge.cli import main_entry

if __name__ == "__main__":
    main_entry()
