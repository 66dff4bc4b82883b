from .models import Config, Modification, ModificationMode
from .document import Document, ElementHandle
from .engine import apply_modifications
from .repository import load_config

__all__ = [
    "Config",
    "Modification",
    "ModificationMode",
    "Document",
    "ElementHandle",
    "apply_modifications",
    "load_config",
]
