"""Small helpers shared across the package."""
from . import config

VERBOSE = False


def vprint(text, level=0):
    """Print text if verbose mode is enabled.

    Parameters
    ----------
    text : str
        Text to print.
    level : int, optional
        Indentation level of the message, by default 0.
    """
    if VERBOSE or config.get("verbose"):
        print("  " * level + str(text))
