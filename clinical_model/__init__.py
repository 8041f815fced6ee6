"""Clinical Model.

An immutable, validated object model for nested clinical records: elements
and resources built through validating builders, closed choice types, typed
references and a generic visitor protocol.
"""

__version__ = "1.0.0"
