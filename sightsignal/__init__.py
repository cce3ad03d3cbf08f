"""SightSignal — match community sightings to signal subscriptions and rank signals."""

__version__ = "0.1.0"
