"""
Locale code conversion for language override feeds.
"""

from .errors import UnsupportedLanguageError


# Languages published under a single "{language}_XX" code
XX_LANGUAGES = ["en", "es", "fr", "nl", "pt", "no", "ja", "tl"]

# Language -> accepted override value
OVERRIDE_VALUES = {
    "af": "af_ZA",
    "ak": "ak_GH",
    "am": "am_ET",
    "ar": "ar_AR",
    "as": "as_IN",
    "ay": "ay_BO",
    "az": "az_AZ",
    "be": "be_BY",
    "bg": "bg_BG",
    "bm": "bm_ML",
    "bn": "bn_IN",
    "bo": "bo_CN",
    "br": "br_FR",
    "bs": "bs_BA",
    "ca": "ca_ES",
    "cb": "cb_IQ",
    "ci": "ci_IT",
    "ck": "ck_US",
    "cs": "cs_CZ",
    "cx": "cx_PH",
    "cy": "cy_GB",
    "da": "da_DK",
    "de": "de_DE",
    "dv": "dv_MV",
    "el": "el_GR",
    "en": "en_XX",
    "eo": "eo_EO",
    "es": "es_XX",
    "et": "et_EE",
    "eu": "eu_ES",
    "fa": "fa_IR",
    "ff": "ff_NG",
    "fi": "fi_FI",
    "fo": "fo_FO",
    "fr": "fr_XX",
    "fy": "fy_NL",
    "ga": "ga_IE",
    "gd": "gd_GB",
    "gl": "gl_ES",
    "gn": "gn_PY",
    "gu": "gu_IN",
    "ha": "ha_NG",
    "he": "he_IL",
    "hi": "hi_IN",
    "hr": "hr_HR",
    "ht": "ht_HT",
    "hu": "hu_HU",
    "hy": "hy_AM",
    "id": "id_ID",
    "ig": "ig_NG",
    "is": "is_IS",
    "it": "it_IT",
    "iu": "iu_CA",
    "ja": "ja_XX",
    "jv": "jv_ID",
    "ka": "ka_GE",
    "kg": "kg_AO",
    "kk": "kk_KZ",
    "km": "km_KH",
    "kn": "kn_IN",
    "ko": "ko_KR",
    "ku": "ku_TR",
    "ky": "ky_KG",
    "la": "la_VA",
    "lg": "lg_UG",
    "li": "li_NL",
    "ln": "ln_CD",
    "lo": "lo_LA",
    "lt": "lt_LT",
    "lv": "lv_LV",
    "mg": "mg_MG",
    "mi": "mi_NZ",
    "mk": "mk_MK",
    "ml": "ml_IN",
    "mn": "mn_MN",
    "mr": "mr_IN",
    "ms": "ms_MY",
    "mt": "mt_MT",
    "my": "my_MM",
    "ne": "ne_NP",
    "nl": "nl_XX",
    "no": "no_XX",
    "ns": "ns_ZA",
    "ny": "ny_MW",
    "om": "om_KE",
    "or": "or_IN",
    "pa": "pa_IN",
    "pl": "pl_PL",
    "ps": "ps_AF",
    "pt": "pt_XX",
    "qa": "qa_MM",
    "qd": "qd_MM",
    "qf": "qf_CM",
    "qh": "qh_PH",
    "qj": "qj_ML",
    "qm": "qm_AO",
    "qn": "qn_AO",
    "qp": "qp_AO",
    "qq": "qq_KE",
    "qw": "qw_KE",
    "qy": "qy_KE",
    "qx": "qx_KE",
    "qu": "qu_PE",
    "rm": "rm_CH",
    "ro": "ro_RO",
    "ru": "ru_RU",
    "rw": "rw_RW",
    "sa": "sa_IN",
    "sc": "sc_IT",
    "sd": "sd_PK",
    "se": "se_NO",
    "si": "si_LK",
    "sk": "sk_SK",
    "sl": "sl_SI",
    "sn": "sn_ZW",
    "so": "so_SO",
    "sq": "sq_AL",
    "sr": "sr_RS",
    "ss": "ss_SZ",
    "st": "st_ZA",
    "su": "su_ID",
    "sv": "sv_SE",
    "sw": "sw_KE",
    "sy": "sy_SY",
    "sz": "sz_PL",
    "ta": "ta_IN",
    "te": "te_IN",
    "tg": "tg_TJ",
    "th": "th_TH",
    "ti": "ti_ET",
    "tl": "tl_XX",
    "tn": "tn_BW",
    "tr": "tr_TR",
    "ts": "ts_ZA",
    "tt": "tt_RU",
    "tz": "tz_MA",
    "ug": "ug_CN",
    "uk": "uk_UA",
    "ur": "ur_PK",
    "uz": "uz_UZ",
    "ve": "ve_ZA",
    "vi": "vi_VN",
    "wy": "wy_PH",
    "wo": "wo_SN",
    "xh": "xh_ZA",
    "yi": "yi_DE",
    "yo": "yo_NG",
    "zh": "zh_CN",
    "zu": "zu_ZA",
    "zz": "zz_TR",
}

TRADITIONAL_CHINESE_REGIONS = ("TW", "HK", "MO")


def _split(locale_code: str):
    parts = locale_code.replace("-", "_").split("_")
    return parts[0].lower(), (parts[1].upper() if len(parts) > 1 else "")


def convert_to_facebook_language_code(locale_code: str) -> str:
    """
    Normalize a locale to the catalog's language code.

    ``es_ES`` -> ``es_XX``, ``de_DE`` -> ``de_DE``, ``zh_TW`` -> ``zh_TW``;
    unknown codes are returned unchanged.
    """
    language, region = _split(locale_code)

    if language in XX_LANGUAGES:
        return f"{language}_XX"

    if language == "zh" and region:
        return "zh_TW" if region in TRADITIONAL_CHINESE_REGIONS else "zh_CN"

    if language in OVERRIDE_VALUES:
        return OVERRIDE_VALUES[language]

    return locale_code


def convert_to_facebook_override_value(language_code: str) -> str:
    """
    Get the override value for a language override feed.

    Raises:
        UnsupportedLanguageError: If the language has no override value
    """
    language, region = _split(language_code)

    if language == "zh" and region:
        return "zh_TW" if region in TRADITIONAL_CHINESE_REGIONS else "zh_CN"

    if language in OVERRIDE_VALUES:
        return OVERRIDE_VALUES[language]

    raise UnsupportedLanguageError(language_code)


def is_language_override_supported(language_code: str) -> bool:
    try:
        convert_to_facebook_override_value(language_code)
    except UnsupportedLanguageError:
        return False
    return True
