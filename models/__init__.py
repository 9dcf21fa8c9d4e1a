"""Data models."""
from models.enums import Comparator
from models.alerts import Rule, Sample, Event
