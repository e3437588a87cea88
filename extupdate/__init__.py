"""extupdate: download, verify and stage updates for installable extensions"""

__version__ = "0.1.0"
