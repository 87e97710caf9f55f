"""
Per-language sign dictionaries.

Each supported sign language gets its own table mapping an internal
sign key to a display value. Tables are built once at start-up and are
read-only afterwards; different languages are never merged, so the same
key can resolve to different display strings per language.

Dynamic gestures are named by motion ("wave", "forward_down") and each
dictionary maps those names to its own sign key.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, Optional

import yaml

from signlens.core.types import SignEntry, SignType

logger = logging.getLogger(__name__)

WAVE = "wave"
FORWARD_DOWN = "forward_down"


class SignDictionary:
    """Read-only key -> SignEntry table for one language."""

    def __init__(self, language: str, entries: Dict[str, SignEntry],
                 dynamic_keys: Optional[Dict[str, str]] = None):
        self.language = language
        self._entries = OrderedDict(entries)
        self._dynamic_keys = dict(dynamic_keys or {})
        missing = [k for k in self._dynamic_keys.values() if k not in self._entries]
        if missing:
            raise ValueError("Dynamic keys %s missing from '%s' dictionary" % (missing, language))

    def lookup(self, key: str) -> Optional[SignEntry]:
        return self._entries.get(key)

    def keys(self) -> list:
        """Keys in table order; the learned model's class indices follow it."""
        return list(self._entries.keys())

    def key_at(self, index: int) -> Optional[str]:
        if 0 <= index < len(self._entries):
            return self.keys()[index]
        return None

    def resolve_dynamic(self, gesture_name: str) -> Optional[str]:
        """Sign key for a named motion gesture, if this language has one."""
        return self._dynamic_keys.get(gesture_name)

    def __contains__(self, key):
        return key in self._entries

    def __len__(self):
        return len(self._entries)

    def __repr__(self):
        return "SignDictionary(%s, %d signs)" % (self.language, len(self))

    @classmethod
    def from_dict(cls, language: str, data: dict) -> 'SignDictionary':
        """Build from the YAML/dict shape::

            signs:
              a: {value: A, type: alphabet, confidence: 1.0}
            dynamic:
              wave: hello
        """
        entries = OrderedDict()
        for key, item in (data.get("signs") or {}).items():
            entries[str(key)] = SignEntry(
                value=str(item["value"]),
                type=SignType(item.get("type", "word")),
                base_confidence=float(item.get("confidence", 1.0)),
            )
        return cls(language, entries, data.get("dynamic") or {})


# =============================================================================
# Built-in tables
# =============================================================================

def _alphabet(letters: Iterable[str]) -> list:
    return [(c.lower(), c.upper(), SignType.ALPHABET) for c in letters]


_DEFAULT_TABLES = {
    "asl": {
        "signs": _alphabet("ABCDEFGHIJKLMNOPQRSTUVWXYZ") + [
            ("hello", "Hello", SignType.WORD),
            ("thank-you", "Thank you", SignType.PHRASE),
            ("please", "Please", SignType.WORD),
            ("help", "Help", SignType.WORD),
            ("yes", "Yes", SignType.WORD),
            ("no", "No", SignType.WORD),
        ],
        "dynamic": {WAVE: "hello", FORWARD_DOWN: "thank-you"},
    },
    "bsl": {
        "signs": _alphabet("ABDILVWY") + [
            ("hello", "Hello", SignType.WORD),
            ("thank-you", "Thank you", SignType.PHRASE),
            ("please", "Please", SignType.WORD),
            ("help", "Help", SignType.WORD),
        ],
        "dynamic": {WAVE: "hello", FORWARD_DOWN: "thank-you"},
    },
    "lsf": {
        "signs": _alphabet("ABDILVWY") + [
            ("bonjour", "Bonjour", SignType.WORD),
            ("merci", "Merci", SignType.WORD),
            ("s-il-vous-plait", "S'il vous plaît", SignType.PHRASE),
            ("oui", "Oui", SignType.WORD),
            ("non", "Non", SignType.WORD),
            ("aide", "Aide", SignType.WORD),
        ],
        "dynamic": {WAVE: "bonjour", FORWARD_DOWN: "merci"},
    },
}


def load_default_dictionaries(languages: Optional[Iterable[str]] = None) -> Dict[str, SignDictionary]:
    """Build the built-in dictionaries, optionally restricted to ``languages``."""
    wanted = set(languages) if languages is not None else set(_DEFAULT_TABLES)
    dictionaries = {}
    for language, table in _DEFAULT_TABLES.items():
        if language not in wanted:
            continue
        entries = OrderedDict(
            (key, SignEntry(value, sign_type)) for key, value, sign_type in table["signs"]
        )
        dictionaries[language] = SignDictionary(language, entries, table["dynamic"])
    logger.debug("Loaded built-in sign dictionaries: %s",
                 ", ".join("%s=%d" % (k, len(v)) for k, v in dictionaries.items()))
    return dictionaries


def load_dictionaries_from_yaml(path: str, base: Optional[Dict[str, SignDictionary]] = None) -> Dict[str, SignDictionary]:
    """Load dictionaries from a YAML file keyed by language code.

    Languages present in the file replace the matching entry of ``base``;
    others are kept.
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    dictionaries = dict(base or {})
    for language, table in data.items():
        dictionaries[str(language)] = SignDictionary.from_dict(str(language), table or {})
        logger.info("Loaded '%s' sign dictionary from %s (%d signs)",
                    language, path, len(dictionaries[str(language)]))
    return dictionaries
