"""Utility functions."""

import os
import sys

from dotenv import load_dotenv


def load_env(env_path=None):
    """Load .env (cwd by default) and return os.environ as a dict.

    Values already set in the process environment win over the file.
    """
    if env_path is None:
        env_path = os.path.join(os.getcwd(), ".env")
    if os.path.isfile(env_path):
        load_dotenv(env_path)
    return dict(os.environ)


def safe_print(*args, **kwargs):
    """Print that won't crash on encoding errors (emoji, etc.)."""
    try:
        print(*args, **kwargs)
    except UnicodeEncodeError:
        text = " ".join(str(a) for a in args)
        encoding = getattr(sys.stdout, "encoding", None) or "utf-8"
        print(text.encode(encoding, errors="replace").decode(encoding, errors="replace"))
