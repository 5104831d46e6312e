"""Package entry point for ``python -m stream_translator``.

WHY: Users run the translator as ``python -m stream_translator "phrase"``.
Python's ``-m`` flag looks for ``__main__.py`` inside the package and
executes it.

HOW: Delegates to the CLI's main() function.
"""

from stream_translator.cli import main

if __name__ == "__main__":
    main()
