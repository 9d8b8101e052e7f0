"""Allow ``python -m pgcrate``."""

from pgcrate.cli.main import main

main()
