"""``python -m filepilot``; same as the ``filepilot`` console script."""

from filepilot.app import main

if __name__ == "__main__":
    raise SystemExit(main())
