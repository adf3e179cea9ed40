from . import conversations as conversation_crud

__all__ = ["conversation_crud"]
