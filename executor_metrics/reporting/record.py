"""Nested record built from the samples of one timestamp."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Union


@dataclass(frozen=True)
class Leaf:
    value: Any

    def to_plain(self) -> Any:
        return self.value


@dataclass
class Node:
    """Nodo interno del registro jerárquico.

    Cada hijo es otro ``Node`` o un ``Leaf`` con el valor de una métrica.
    """

    children: Dict[str, Union["Node", Leaf]] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.children)

    def __len__(self) -> int:
        return len(self.children)

    def merge(self, path: Sequence[str], value: Any) -> bool:
        """Escribe ``value`` en ``path`` creando los nodos intermedios necesarios.

        Devuelve ``False`` sin modificar nada cuando la ruta choca con la
        estructura existente: una hoja en una posición intermedia o un nodo
        en la posición final.
        """

        if not path:
            return False
        node = self
        for segment in path[:-1]:
            child = node.children.get(segment)
            if child is None:
                child = Node()
                node.children[segment] = child
            elif not isinstance(child, Node):
                return False
            node = child
        leaf_key = path[-1]
        if isinstance(node.children.get(leaf_key), Node):
            return False
        node.children[leaf_key] = Leaf(value)
        return True

    def clear(self) -> None:
        self.children.clear()

    def to_plain(self) -> Dict[str, Any]:
        return {key: child.to_plain() for key, child in self.children.items()}


def merge(record: Node, path: Sequence[str], value: Any) -> bool:
    """Equivalente a ``record.merge(path, value)``."""

    return record.merge(path, value)
