"""Translation of user-visible replacement strings."""
import os
import gettext
import logging
from functools import lru_cache

from markupsafe import Markup

from security import escape_html

logger = logging.getLogger(__name__)

TEXT_DOMAIN = 'username-protection'
LOCALE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'languages')


@lru_cache(maxsize=None)
def _translation(language):
    languages = [language] if language else None
    translation = gettext.translation(TEXT_DOMAIN, localedir=LOCALE_DIR, languages=languages, fallback=True)
    if type(translation) is gettext.NullTranslations:
        logger.debug(f"No {TEXT_DOMAIN} catalog for {language or 'default locale'}, using source strings")
    return translation


def translate(text, language=None):
    """Translate text in the username-protection text domain; unknown strings come back as-is."""
    language = language or os.environ.get('SITE_LANGUAGE')
    return _translation(language).gettext(text)


def translate_escaped(text, language=None):
    """Translate, then HTML-escape. The result is Markup so templates do not escape it again."""
    return Markup(escape_html(translate(text, language)))


def clear_translation_cache():
    _translation.cache_clear()
