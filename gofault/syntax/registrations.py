import threading
from typing import Dict

from tree_sitter import Language

LANGUAGE_LOCK = threading.Lock()
LANGUAGES: Dict[str, Language] = {}


def load_go_language() -> Language:
    import tree_sitter_go
    return Language(tree_sitter_go.language())


LANGUAGE_LOADERS = {
    'go': load_go_language,
}


def get_language(name: str) -> Language:
    """Returns the tree-sitter language, loading its grammar on first use"""
    with LANGUAGE_LOCK:
        language = LANGUAGES.get(name)
        if language is None:
            loader = LANGUAGE_LOADERS.get(name)
            if loader is None:
                raise ValueError(f'Unsupported tree-sitter language: {name}')
            language = loader()
            LANGUAGES[name] = language
        return language
