"""Missing-person registry with face matching against registered photos."""

__version__ = "0.1.0"
