"""Builders for the pieces of a request.

Each module here is pure and stateless: path substitution, query
serialization, header layering, body encoding and final request assembly.
They are shared by the runtime endpoint methods and by generated client code.
"""
