"""Allow ``python -m inup``."""

from inup.cli import main

if __name__ == "__main__":
    main()
