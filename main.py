"""
Entry point: ``python main.py [-c CONFIG] [serve|add|delete|list|default-config]``
"""

from linker_app.cli import main


if __name__ == "__main__":
    main()
