"""mykhata: receipt OCR and spending-category inference."""

from .cache import CacheService, TTLCache, content_hash
from .categorize import SmartCategorizer
from .config import AppConfig, load_config
from .errors import (
    InvalidImageError,
    MyKhataError,
    PoolClosedError,
    RecognitionError,
    ValidationError,
)
from .extractor import extract_receipt_data
from .models import (
    Category,
    CategoryPrediction,
    CategoryScore,
    CategorySuggestion,
    ExtractedReceiptData,
    LineItem,
    Receipt,
    Transaction,
    UserProfile,
)
from .pool import WorkerPool
from .preprocess import preprocess_image
from .scanner import ReceiptScanner
from .service import MyKhata

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "CacheService",
    "Category",
    "CategoryPrediction",
    "CategoryScore",
    "CategorySuggestion",
    "ExtractedReceiptData",
    "InvalidImageError",
    "LineItem",
    "MyKhata",
    "MyKhataError",
    "PoolClosedError",
    "Receipt",
    "ReceiptScanner",
    "RecognitionError",
    "SmartCategorizer",
    "TTLCache",
    "Transaction",
    "UserProfile",
    "ValidationError",
    "WorkerPool",
    "content_hash",
    "extract_receipt_data",
    "load_config",
    "preprocess_image",
]
