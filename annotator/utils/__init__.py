from .serialization import (
    document_to_dict,
    load_annotations,
    load_text_layers,
    write_document,
)

__all__ = ["document_to_dict", "load_annotations", "load_text_layers", "write_document"]
