from .manifest import BackendSpec, DictionaryItemSpec, DictionarySpec, InputKind, Manifest

__all__ = ["BackendSpec", "DictionaryItemSpec", "DictionarySpec", "InputKind", "Manifest"]
