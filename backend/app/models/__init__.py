from app.models.base import Base
from app.models.document import StoredDocument

__all__ = ["Base", "StoredDocument"]
