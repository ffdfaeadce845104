"""GraphQL scalar to Python type mapping for generated bindings.

Generated models are pydantic models, so a scalar only needs a Python type
annotation pydantic knows how to validate and serialize, plus the import
that brings it into scope.

Example usage:
    from gql_opgen.core.scalars import ScalarBinding, ScalarRegistry

    registry = ScalarRegistry()
    registry.register("Money", ScalarBinding("Decimal", "from decimal import Decimal"))
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ScalarBinding:
    """How one GraphQL scalar appears in generated code.

    Attributes:
        python_type: The annotation used in generated code (e.g. "datetime")
        import_statement: The import needed for it, or None for builtins
    """
    python_type: str
    import_statement: str | None = None


BUILTIN_BINDINGS = {
    "String": ScalarBinding("str"),
    "Int": ScalarBinding("int"),
    "Float": ScalarBinding("float"),
    "Boolean": ScalarBinding("bool"),
    "ID": ScalarBinding("str"),
}

DEFAULT_BINDINGS = {
    "DateTime": ScalarBinding("datetime", "from datetime import datetime"),
    "Date": ScalarBinding("date", "from datetime import date"),
    "Time": ScalarBinding("time", "from datetime import time"),
    "UUID": ScalarBinding("UUID", "from uuid import UUID"),
    "Decimal": ScalarBinding("Decimal", "from decimal import Decimal"),
    "JSON": ScalarBinding("Any"),
    "JSONObject": ScalarBinding("Dict[str, Any]"),
    "Upload": ScalarBinding("Upload", "from gql_opgen.core.upload import Upload"),
}

# Custom scalars nobody registered a binding for
FALLBACK_BINDING = ScalarBinding("Any")


class ScalarRegistry:
    """Registry of scalar bindings.

    Built-in GraphQL scalars cannot be overridden; everything else falls
    back to `Any` unless registered.

    Example:
        registry = ScalarRegistry()
        registry.get("DateTime").python_type  # "datetime"
        registry.get("Unknown").python_type   # "Any"
    """

    def __init__(self, bindings: dict[str, ScalarBinding] | None = None):
        self._bindings: dict[str, ScalarBinding] = dict(DEFAULT_BINDINGS)
        if bindings:
            self._bindings.update(bindings)

    def register(self, scalar_name: str, binding: ScalarBinding):
        """Register a binding for a custom scalar."""
        if scalar_name in BUILTIN_BINDINGS:
            raise ValueError(f"Cannot override built-in scalar {scalar_name}")
        self._bindings[scalar_name] = binding

    def get(self, scalar_name: str) -> ScalarBinding:
        """Get the binding for a scalar, falling back to `Any`."""
        if scalar_name in BUILTIN_BINDINGS:
            return BUILTIN_BINDINGS[scalar_name]
        return self._bindings.get(scalar_name, FALLBACK_BINDING)

    def has(self, scalar_name: str) -> bool:
        """Check if a binding is known for a scalar."""
        return scalar_name in BUILTIN_BINDINGS or scalar_name in self._bindings

    def imports_for(self, scalar_names) -> list[str]:
        """Sorted import statements needed by the given scalars."""
        imports = {self.get(name).import_statement for name in scalar_names}
        imports.discard(None)
        return sorted(imports)
