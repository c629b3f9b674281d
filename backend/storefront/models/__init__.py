from .product import Product
from .knowledge import KnowledgeBaseEntry
