"""Invigilation duty notifier.

Aggregates exam-invigilation duties per person over a date window and mails
one duty notice to each invigilator.
"""

__version__ = "1.0.0"
