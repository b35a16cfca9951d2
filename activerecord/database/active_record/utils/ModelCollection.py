from typing import TypeVar, List, Any

T = TypeVar('T')


class ModelCollection(list):
    """The list returned by multi-row finders and poly relationships."""

    def __init__(self, items: List[T] = ()):
        super().__init__(items)

    def to_list_dict(self, **options) -> List[dict[str, Any]]:
        return [m.to_dict(**options) for m in self]

    def pluck(self, column: str) -> List[Any]:
        """Get a list of values from a specific column"""
        return [getattr(model, column) for model in self]

    def where(self, callback) -> 'ModelCollection':
        """Filter the collection using a callback"""
        return ModelCollection([item for item in self if callback(item)])

    def first(self):
        """Get first item from collection"""
        return self[0] if len(self) > 0 else None

    def take(self, n=1) -> 'ModelCollection':
        return ModelCollection(self[:n])

    def last(self):
        """Get last item from collection"""
        return self[-1] if len(self) > 0 else None
