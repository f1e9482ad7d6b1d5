# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Custom exceptions and warnings for Spliceosome."""


class InputValidationError(ValueError):
    """Raised when input data is malformed (unsorted or overlapping exons,
    negative counts, inconsistent strand or coordinates).

    Args:
        message: Description of the problem.
        identifier: Identifier of the offending object (read, read class,
            transcript, sample or locus), if known.
    """

    def __init__(self, message, identifier=None):
        self.message = message
        self.identifier = identifier
        if identifier is not None:
            message = f'{message} [{identifier}]'
        super().__init__(message)

    def __reduce__(self):
        return type(self), (self.message, self.identifier)


class ConvergenceNotReached(UserWarning):
    """EM stopped at the iteration cap before reaching the convergence
    threshold."""


class EmptyInputWarning(UserWarning):
    """No read classes for a sample, or no candidate survived filtering."""
