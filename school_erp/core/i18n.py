from typing import Callable, Dict, Optional
from functools import lru_cache
import json
from pathlib import Path


class I18nProvider:
    """Loads the JSON translation tables shipped with the package"""

    def __init__(self):
        self.translations: Dict[str, Dict[str, str]] = {}
        self.default_language = "en"
        self.supported_languages = {"en", "hi", "ar"}
        self._load_translations()

    def _load_translations(self) -> None:
        translations_dir = Path(__file__).parent / "translations"
        if not translations_dir.exists():
            raise FileNotFoundError(f"Translations directory not found: {translations_dir}")

        for lang in self.supported_languages:
            file_path = translations_dir / f"{lang}.json"
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    self.translations[lang] = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in translation file {file_path}: {str(e)}")

    def get_translation(self, language: str = "en") -> Callable[[str], str]:
        if language not in self.supported_languages:
            language = self.default_language

        translations = self.translations.get(language, self.translations[self.default_language])

        def translate(key: str, **kwargs) -> str:
            translation = translations.get(key)
            if translation is None:
                translation = self.translations[self.default_language].get(key, key)

            if kwargs:
                try:
                    return translation.format(**kwargs)
                except KeyError:
                    return translation

            return translation

        return translate


# Singleton instance
i18n_provider = I18nProvider()


@lru_cache(maxsize=32)
def get_translation(language: str = "en") -> Callable[[str], str]:
    return i18n_provider.get_translation(language)


def language_from_header(accept_language: Optional[str]) -> str:
    """Pick the first supported language tag from an Accept-Language header."""
    if not accept_language:
        return i18n_provider.default_language
    for part in accept_language.split(","):
        tag = part.split(";")[0].strip().lower()
        primary = tag.split("-")[0]
        if primary in i18n_provider.supported_languages:
            return primary
    return i18n_provider.default_language
