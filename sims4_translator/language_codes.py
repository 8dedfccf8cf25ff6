"""
Sims 4 string-table locale codes.

The game ships one string table per locale. Locale codes follow the
game's own ``LLL_RR`` naming (three-letter language, two-letter region),
e.g. ``ENG_US`` or ``CHS_CN``. Mod translators usually also refer to
languages by ISO 639-1 / BCP 47 codes, so both spellings are accepted
where a language has to be resolved.
"""

from typing import Optional, Dict

# Locales supported by The Sims 4 string tables
SIMS4_LOCALES = {
    'ENG_US': 'English',
    'CHS_CN': 'Chinese (Simplified)',
    'CHT_CN': 'Chinese (Traditional)',
    'CZE_CZ': 'Czech',
    'DAN_DK': 'Danish',
    'DUT_NL': 'Dutch',
    'FIN_FI': 'Finnish',
    'FRE_FR': 'French',
    'GER_DE': 'German',
    'ITA_IT': 'Italian',
    'JPN_JP': 'Japanese',
    'KOR_KR': 'Korean',
    'NOR_NO': 'Norwegian',
    'POL_PL': 'Polish',
    'POR_BR': 'Portuguese (Brazil)',
    'RUS_RU': 'Russian',
    'SPA_ES': 'Spanish (Spain)',
    'SPA_MX': 'Spanish (Mexico)',
    'SWE_SE': 'Swedish',
}

# ISO / BCP 47 aliases for the locales above
LOCALE_ALIASES = {
    'en': 'ENG_US',
    'en-US': 'ENG_US',
    'zh': 'CHS_CN',
    'zh-CN': 'CHS_CN',
    'zh-Hans': 'CHS_CN',
    'zh-TW': 'CHT_CN',
    'zh-Hant': 'CHT_CN',
    'cs': 'CZE_CZ',
    'da': 'DAN_DK',
    'nl': 'DUT_NL',
    'fi': 'FIN_FI',
    'fr': 'FRE_FR',
    'de': 'GER_DE',
    'it': 'ITA_IT',
    'ja': 'JPN_JP',
    'ko': 'KOR_KR',
    'no': 'NOR_NO',
    'nb': 'NOR_NO',
    'pl': 'POL_PL',
    'pt': 'POR_BR',
    'pt-BR': 'POR_BR',
    'ru': 'RUS_RU',
    'es': 'SPA_ES',
    'es-ES': 'SPA_ES',
    'es-MX': 'SPA_MX',
    'sv': 'SWE_SE',
}


def normalize_locale(code: str) -> Optional[str]:
    """
    Resolve a locale or ISO alias to the game's locale code.

    Examples:
        >>> normalize_locale('chs_cn')
        'CHS_CN'
        >>> normalize_locale('zh-CN')
        'CHS_CN'
        >>> normalize_locale('xx') is None
        True
    """
    if not code:
        return None
    code = code.strip()
    if code.upper() in SIMS4_LOCALES:
        return code.upper()
    return LOCALE_ALIASES.get(code)


def get_language_name(code: str) -> Optional[str]:
    """
    Get the display name of a locale.

    Examples:
        >>> get_language_name('CHS_CN')
        'Chinese (Simplified)'
        >>> get_language_name('de')
        'German'
    """
    locale = normalize_locale(code)
    return SIMS4_LOCALES.get(locale) if locale else None


def get_all_language_codes() -> Dict[str, str]:
    """Get all supported locale codes mapped to their names."""
    return SIMS4_LOCALES.copy()
