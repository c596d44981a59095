"""Exceptions raised by the comparison session (pure functions never raise)"""


class ComparisonError(Exception):
    """Base for comparison session errors"""


class SessionClosedError(ComparisonError):
    """Operation on a session whose view was torn down"""


class CollaboratorError(ComparisonError):
    """The external price API failed; the caller decides what to show"""


class UnknownGroupError(ComparisonError, KeyError):
    """Offer group key not present in the current comparison"""
