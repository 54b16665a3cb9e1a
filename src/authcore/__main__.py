"""Entry point for 'python -m authcore'."""

from authcore.cli import main

if __name__ == "__main__":
    main()
