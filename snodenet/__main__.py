"""``python -m snodenet`` and the ``snodenet`` console script."""

from __future__ import annotations

from snodenet.cli import cli


def main() -> None:
    cli(prog_name="snodenet", obj={})


if __name__ == "__main__":
    main()
