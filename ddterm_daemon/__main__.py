"""Entry point for python -m ddterm_daemon."""

from .daemon import main

if __name__ == "__main__":
    main()
