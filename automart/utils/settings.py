# automart/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

DEBUG = os.getenv("DEBUG", "0").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./automart.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")

# shop client -> backend
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3000")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", 10))
APP_ORIGIN = os.getenv("APP_ORIGIN", "http://localhost:3000")

STORAGE_PREFIX = os.getenv("STORAGE_PREFIX", "automart_")

CART_MAX_ITEMS = int(os.getenv("CART_MAX_ITEMS", 99))
CART_MAX_QUANTITY_PER_ITEM = int(os.getenv("CART_MAX_QUANTITY_PER_ITEM", 10))

DEFAULT_CUSTOMER_NAME = os.getenv("DEFAULT_CUSTOMER_NAME", "Testbenutzer 1")
DEFAULT_LOCATION = os.getenv("DEFAULT_LOCATION", "markt-xy")

# bumping the version strings is the only way to invalidate the static cache
CACHE_NAME = os.getenv("CACHE_NAME", "automart-v1.0.0")
STATIC_CACHE = os.getenv("STATIC_CACHE", "automart-static-v1")
DYNAMIC_CACHE = os.getenv("DYNAMIC_CACHE", "automart-dynamic-v1")

LOCKER_TOPIC_TEMPLATE = os.getenv("LOCKER_TOPIC_TEMPLATE", "locker/{locker_id}/commands")

CONNECTIVITY_CHECK_SECONDS = float(os.getenv("CONNECTIVITY_CHECK_SECONDS", 30))
