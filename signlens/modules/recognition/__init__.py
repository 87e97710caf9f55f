"""Sign recognition: rule classifier, dynamic gestures, dictionaries."""
from .sign_dictionary import SignDictionary, load_default_dictionaries

__all__ = ["SignDictionary", "load_default_dictionaries"]
