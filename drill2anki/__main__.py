"""Allow ``python -m drill2anki``."""

from drill2anki.cli.main import main

if __name__ == "__main__":
    main()
