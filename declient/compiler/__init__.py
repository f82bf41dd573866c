"""The endpoint compiler.

Declarations go in; immutable request plans come out. The processors
classify parameters and analyze return types, and ``compiler`` ties them
together per endpoint and per API.
"""
