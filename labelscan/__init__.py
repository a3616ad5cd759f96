"""Food label scanning: allergen checks, rolling scan history and notifications."""

__version__ = "0.1.0"
