"""Allow ``python -m bodytrack_datastore``."""

from .cli import main

if __name__ == "__main__":
    main()
