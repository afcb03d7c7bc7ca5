from pprint import pformat


class DataKlass:
    """
    Dict with attribute access. Used for the mutable construction config
    handed to ``on_construct`` and for record serialization.
    """

    def __init__(self, initial_data=None, safe_mode=False):
        self._data = dict(initial_data or {})
        self._safe_mode = safe_mode

    def __getattr__(self, key):
        if key.startswith("__"):
            raise AttributeError(key)
        data = self.__dict__.get("_data", {})
        if key in data:
            return data[key]
        if self.__dict__.get("_safe_mode"):
            return None
        raise AttributeError(f"{self.__class__.__name__} object has no attribute '{key}'")

    def __setattr__(self, key, value):
        if key in ("_data", "_safe_mode"):
            super().__setattr__(key, value)
        else:
            self._data[key] = value

    def __getitem__(self, key):
        return self._data[key]

    def __setitem__(self, key, value):
        self._data[key] = value

    def __delitem__(self, key):
        del self._data[key]

    def __contains__(self, key):
        return key in self._data

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __eq__(self, other):
        if isinstance(other, DataKlass):
            return self._data == other._data
        if isinstance(other, dict):
            return self._data == other
        return NotImplemented

    def get(self, key, default=None):
        return self._data.get(key, default)

    def keys(self):
        return self._data.keys()

    def items(self):
        return self._data.items()

    def to_dict(self):
        """Recursively convert DataKlass into dicts."""
        def convert(value):
            if isinstance(value, DataKlass):
                return value.to_dict()
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            if isinstance(value, (list, tuple)):
                return [convert(v) for v in value]
            return value

        return {k: convert(v) for k, v in self._data.items()}

    def update(self, new_data):
        self._data.update(new_data)

    def __repr__(self):
        return f"{self.__class__.__name__}({pformat(self.to_dict(), indent=2, width=100)})"
