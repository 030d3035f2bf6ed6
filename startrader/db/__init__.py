from .base import Base
from .models.cache import CacheRecord  # Registers cache_entries table (if CACHE_TYPE=database)
