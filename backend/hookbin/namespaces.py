from typing import Iterable, List, Tuple

from hookbin.errors import NamespaceNotFound

_RESERVED = {".", ".."}


class NamespaceRegistry:
    """
    Fixed set of namespaces accepted by the recorder.
    Built once at startup; every externally supplied namespace is checked
    here before any storage is touched.
    """

    def __init__(self, names: Iterable[str]):
        ordered: List[str] = []
        for name in names:
            if not name or name in _RESERVED or "/" in name or "\\" in name:
                raise ValueError(f"Invalid namespace name: {name!r}")
            if name not in ordered:
                ordered.append(name)
        self._names: Tuple[str, ...] = tuple(ordered)

    def is_valid(self, name: str) -> bool:
        return name in self._names

    def list(self) -> List[str]:
        return list(self._names)

    def require(self, name: str) -> str:
        if not self.is_valid(name):
            raise NamespaceNotFound(name)
        return name

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self):
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)
