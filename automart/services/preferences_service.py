# automart/services/preferences_service.py
from pydantic import ValidationError as PydanticValidationError

from automart.domain.schemas import UserPreferences
from automart.services.kv_store import KeyValueStore
from automart.utils.logging import get_logger
from automart.utils.settings import DEFAULT_CUSTOMER_NAME, DEFAULT_LOCATION

logger = get_logger(__name__)


class PreferencesService:
    STORAGE_KEY = "user_preferences"

    def __init__(self, store: KeyValueStore):
        self.store = store

    def defaults(self) -> UserPreferences:
        return UserPreferences(name=DEFAULT_CUSTOMER_NAME, location=DEFAULT_LOCATION)

    def load(self) -> UserPreferences:
        stored = self.store.get(self.STORAGE_KEY)
        if not isinstance(stored, dict):
            return self.defaults()
        try:
            # stored profile may be partial, defaults fill the gaps
            return UserPreferences.model_validate({**self.defaults().to_wire(), **stored})
        except PydanticValidationError as e:
            logger.error(f"Failed to load user preferences: {e}")
            return self.defaults()

    def save(self, prefs: UserPreferences) -> bool:
        return self.store.set(self.STORAGE_KEY, prefs.to_wire())

    def update(self, **changes) -> UserPreferences:
        prefs = self.load().model_copy(update=changes)
        self.save(prefs)
        return prefs
