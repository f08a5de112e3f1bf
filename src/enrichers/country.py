"""Country detection from domain names and country -> timezone lookup."""

from src.utils.logger import get_logger

logger = get_logger("country")

# ccTLD (without leading dot) -> ISO 3166-1 alpha-2
CCTLD_COUNTRY = {
    "fr": "FR", "de": "DE", "es": "ES", "it": "IT", "pt": "PT", "nl": "NL", "be": "BE", "lu": "LU",
    "ch": "CH", "at": "AT", "li": "LI", "mc": "MC", "co.uk": "GB", "uk": "GB", "ie": "IE", "se": "SE",
    "no": "NO", "dk": "DK", "fi": "FI", "pl": "PL", "cz": "CZ", "sk": "SK", "hu": "HU", "ro": "RO",
    "bg": "BG", "hr": "HR", "si": "SI", "rs": "RS", "ba": "BA", "me": "ME", "mk": "MK", "al": "AL",
    "gr": "GR", "cy": "CY", "mt": "MT", "ee": "EE", "lv": "LV", "lt": "LT", "ua": "UA", "by": "BY",
    "md": "MD", "us": "US", "ca": "CA", "mx": "MX", "com.br": "BR", "br": "BR", "ar": "AR", "cl": "CL",
    "co": "CO", "pe": "PE", "ve": "VE", "ec": "EC", "uy": "UY", "py": "PY", "bo": "BO", "cr": "CR",
    "gt": "GT", "hn": "HN", "sv": "SV", "ni": "NI", "pa": "PA", "do": "DO", "cu": "CU", "pr": "PR",
    "jm": "JM", "tt": "TT", "ru": "RU", "su": "RU", "cn": "CN", "jp": "JP", "kr": "KR", "in": "IN",
    "pk": "PK", "bd": "BD", "lk": "LK", "th": "TH", "vn": "VN", "id": "ID", "my": "MY", "sg": "SG",
    "ph": "PH", "tw": "TW", "hk": "HK", "mm": "MM", "kh": "KH", "la": "LA", "np": "NP", "kz": "KZ",
    "uz": "UZ", "tm": "TM", "kg": "KG", "tj": "TJ", "az": "AZ", "ge": "GE", "am": "AM", "mn": "MN",
    "tr": "TR", "sa": "SA", "ae": "AE", "eg": "EG", "qa": "QA", "kw": "KW", "bh": "BH", "om": "OM",
    "jo": "JO", "lb": "LB", "iq": "IQ", "ir": "IR", "il": "IL", "ps": "PS", "ye": "YE", "sy": "SY",
    "za": "ZA", "ng": "NG", "gh": "GH", "ke": "KE", "tz": "TZ", "ug": "UG", "et": "ET", "sn": "SN",
    "ci": "CI", "cm": "CM", "cd": "CD", "mg": "MG", "tn": "TN", "dz": "DZ", "ma": "MA", "ly": "LY",
    "ao": "AO", "mz": "MZ", "zw": "ZW", "bw": "BW", "na": "NA", "rw": "RW", "mu": "MU", "au": "AU",
    "nz": "NZ", "fj": "FJ",
}

# TLDs that say nothing about location; ".co" is Colombia but used generically
GENERIC_TLDS = frozenset({
    "com", "org", "net", "info", "biz", "io", "app", "dev", "xyz",
    "online", "site", "tech", "store", "blog", "co",
})

# ISO country -> IANA timezone of the capital or most populous zone
COUNTRY_TIMEZONES = {
    "GB": "Europe/London", "FR": "Europe/Paris", "DE": "Europe/Berlin",
    "ES": "Europe/Madrid", "RU": "Europe/Moscow", "CN": "Asia/Shanghai",
    "AF": "Asia/Kabul", "AL": "Europe/Tirane", "DZ": "Africa/Algiers",
    "AD": "Europe/Andorra", "AO": "Africa/Luanda", "AG": "America/Antigua",
    "AR": "America/Argentina/Buenos_Aires", "AM": "Asia/Yerevan", "AU": "Australia/Sydney",
    "AT": "Europe/Vienna", "AZ": "Asia/Baku", "BS": "America/Nassau",
    "BH": "Asia/Bahrain", "BD": "Asia/Dhaka", "BB": "America/Barbados",
    "BY": "Europe/Minsk", "BE": "Europe/Brussels", "BZ": "America/Belize",
    "BJ": "Africa/Porto-Novo", "BT": "Asia/Thimphu", "BO": "America/La_Paz",
    "BA": "Europe/Sarajevo", "BW": "Africa/Gaborone", "BR": "America/Sao_Paulo",
    "BN": "Asia/Brunei", "BG": "Europe/Sofia", "BF": "Africa/Ouagadougou",
    "BI": "Africa/Bujumbura", "CV": "Atlantic/Cape_Verde", "KH": "Asia/Phnom_Penh",
    "CM": "Africa/Douala", "CA": "America/Toronto", "CF": "Africa/Bangui",
    "TD": "Africa/Ndjamena", "CL": "America/Santiago", "CO": "America/Bogota",
    "KM": "Indian/Comoro", "CG": "Africa/Brazzaville", "CD": "Africa/Kinshasa",
    "CR": "America/Costa_Rica", "CI": "Africa/Abidjan", "HR": "Europe/Zagreb",
    "CU": "America/Havana", "CY": "Asia/Nicosia", "CZ": "Europe/Prague",
    "DK": "Europe/Copenhagen", "DJ": "Africa/Djibouti", "DM": "America/Dominica",
    "DO": "America/Santo_Domingo", "EC": "America/Guayaquil", "EG": "Africa/Cairo",
    "SV": "America/El_Salvador", "GQ": "Africa/Malabo", "ER": "Africa/Asmara",
    "EE": "Europe/Tallinn", "SZ": "Africa/Mbabane", "ET": "Africa/Addis_Ababa",
    "FJ": "Pacific/Fiji", "FI": "Europe/Helsinki", "GA": "Africa/Libreville",
    "GM": "Africa/Banjul", "GE": "Asia/Tbilisi", "GH": "Africa/Accra",
    "GR": "Europe/Athens", "GD": "America/Grenada", "GT": "America/Guatemala",
    "GN": "Africa/Conakry", "GW": "Africa/Bissau", "GY": "America/Guyana",
    "HT": "America/Port-au-Prince", "HN": "America/Tegucigalpa", "HU": "Europe/Budapest",
    "IS": "Atlantic/Reykjavik", "IN": "Asia/Kolkata", "ID": "Asia/Jakarta",
    "IR": "Asia/Tehran", "IQ": "Asia/Baghdad", "IE": "Europe/Dublin",
    "IL": "Asia/Jerusalem", "IT": "Europe/Rome", "JM": "America/Jamaica",
    "JP": "Asia/Tokyo", "JO": "Asia/Amman", "KZ": "Asia/Almaty",
    "KE": "Africa/Nairobi", "KI": "Pacific/Tarawa", "KP": "Asia/Pyongyang",
    "KR": "Asia/Seoul", "KW": "Asia/Kuwait", "KG": "Asia/Bishkek",
    "LA": "Asia/Vientiane", "LV": "Europe/Riga", "LB": "Asia/Beirut",
    "LS": "Africa/Maseru", "LR": "Africa/Monrovia", "LY": "Africa/Tripoli",
    "LI": "Europe/Vaduz", "LT": "Europe/Vilnius", "LU": "Europe/Luxembourg",
    "MG": "Indian/Antananarivo", "MW": "Africa/Blantyre", "MY": "Asia/Kuala_Lumpur",
    "MV": "Indian/Maldives", "ML": "Africa/Bamako", "MT": "Europe/Malta",
    "MH": "Pacific/Majuro", "MR": "Africa/Nouakchott", "MU": "Indian/Mauritius",
    "MX": "America/Mexico_City", "FM": "Pacific/Pohnpei", "MD": "Europe/Chisinau",
    "MC": "Europe/Monaco", "MN": "Asia/Ulaanbaatar", "ME": "Europe/Podgorica",
    "MA": "Africa/Casablanca", "MZ": "Africa/Maputo", "MM": "Asia/Yangon",
    "NA": "Africa/Windhoek", "NR": "Pacific/Nauru", "NP": "Asia/Kathmandu",
    "NL": "Europe/Amsterdam", "NZ": "Pacific/Auckland", "NI": "America/Managua",
    "NE": "Africa/Niamey", "NG": "Africa/Lagos", "MK": "Europe/Skopje",
    "NO": "Europe/Oslo", "OM": "Asia/Muscat", "PK": "Asia/Karachi",
    "PW": "Pacific/Palau", "PS": "Asia/Gaza", "PA": "America/Panama",
    "PG": "Pacific/Port_Moresby", "PY": "America/Asuncion", "PE": "America/Lima",
    "PH": "Asia/Manila", "PL": "Europe/Warsaw", "PT": "Europe/Lisbon",
    "QA": "Asia/Qatar", "RO": "Europe/Bucharest", "RW": "Africa/Kigali",
    "KN": "America/St_Kitts", "LC": "America/St_Lucia", "VC": "America/St_Vincent",
    "WS": "Pacific/Apia", "SM": "Europe/San_Marino", "ST": "Africa/Sao_Tome",
    "SA": "Asia/Riyadh", "SN": "Africa/Dakar", "RS": "Europe/Belgrade",
    "SC": "Indian/Mahe", "SL": "Africa/Freetown", "SG": "Asia/Singapore",
    "SK": "Europe/Bratislava", "SI": "Europe/Ljubljana", "SB": "Pacific/Guadalcanal",
    "SO": "Africa/Mogadishu", "ZA": "Africa/Johannesburg", "SS": "Africa/Juba",
    "LK": "Asia/Colombo", "SD": "Africa/Khartoum", "SR": "America/Paramaribo",
    "SE": "Europe/Stockholm", "CH": "Europe/Zurich", "SY": "Asia/Damascus",
    "TW": "Asia/Taipei", "TJ": "Asia/Dushanbe", "TZ": "Africa/Dar_es_Salaam",
    "TH": "Asia/Bangkok", "TL": "Asia/Dili", "TG": "Africa/Lome",
    "TO": "Pacific/Tongatapu", "TT": "America/Port_of_Spain", "TN": "Africa/Tunis",
    "TR": "Europe/Istanbul", "TM": "Asia/Ashgabat", "TV": "Pacific/Funafuti",
    "UG": "Africa/Kampala", "UA": "Europe/Kiev", "AE": "Asia/Dubai",
    "US": "America/New_York", "UY": "America/Montevideo", "UZ": "Asia/Tashkent",
    "VU": "Pacific/Efate", "VA": "Europe/Vatican", "VE": "America/Caracas",
    "VN": "Asia/Ho_Chi_Minh", "YE": "Asia/Aden", "ZM": "Africa/Lusaka",
    "ZW": "Africa/Harare",
}


def detect_country(domain: str) -> str | None:
    """Infer a country code from the domain's ccTLD.

    Compound suffixes (``.co.uk``, ``.com.br``) are tried first. Generic
    TLDs and unknown suffixes yield ``None``.
    """
    lower = domain.lower().rstrip(".")

    for suffix, country in CCTLD_COUNTRY.items():
        if "." in suffix and lower.endswith(f".{suffix}"):
            return country

    if "." not in lower:
        return None

    tld = lower.rsplit(".", 1)[1]
    if tld in GENERIC_TLDS:
        return None
    return CCTLD_COUNTRY.get(tld)


def timezone_for_country(country: str | None) -> str | None:
    """IANA timezone for a country code, or None when unknown."""
    if not country:
        return None
    timezone = COUNTRY_TIMEZONES.get(country.strip().upper())
    if timezone is None:
        logger.debug("timezone_unknown_for_country", country=country)
    return timezone
