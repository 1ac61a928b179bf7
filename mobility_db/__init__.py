"""Schema migrations, models and example analytics for the mobility research platform."""

__version__ = "0.3.0"
