"""Processors package for declaration analysis.

This package contains the processor classes that classify endpoint
parameters and analyze declared return types.
"""

from declient.compiler.processors.parameter_processor import ParameterProcessor
from declient.compiler.processors.response_processor import ResponseProcessor

__all__ = [
    'ParameterProcessor',
    'ResponseProcessor',
]
