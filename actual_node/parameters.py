from typing import Any, Mapping

from pydantic import TypeAdapter

from actual_node.payloads import parse_json_field


class NodeParameters:
    """Parameter values of one item, read through the fields its operation declares.

    Values the item does not carry fall back to the field default. Asking for a
    field the operation never declared is a bug in the handler and raises
    ``KeyError``.
    """

    def __init__(self, values: Mapping[str, Any], fields: Mapping, index: int = 0):
        self.values = dict(values or {})
        self.fields = fields
        self.index = index

    def get(self, name: str) -> Any:
        field = self.fields[name]
        return self.values.get(name, field.default)

    def has(self, name: str) -> bool:
        """True when the item supplied ``name`` explicitly."""
        if name not in self.fields:
            raise KeyError(name)
        return name in self.values

    def provided(self, mapping: Mapping[str, str]) -> dict:
        """Explicitly supplied values, renamed via ``mapping`` (param -> vendor key)."""
        return {key: self.values[name] for name, key in mapping.items() if self.has(name)}

    def json(self, name: str, adapter: TypeAdapter):
        return parse_json_field(name, self.get(name), adapter)
