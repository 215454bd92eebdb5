"""Allow running gitosu with ``python -m gitosu``."""

from gitosu.cli.main import main

if __name__ == "__main__":
    main()
