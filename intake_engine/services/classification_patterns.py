"""
Keyword tables for deterministic intake classification.

``INTENT_PATTERNS`` and ``DEPARTMENT_PATTERNS`` are priority tables: the
matching entry with the highest priority wins, and among equal priorities
the one registered first wins. ``STRONG_KEYWORD_RULES`` is a separate
high-recall table used only to rescue an unclassified result.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from intake_engine.schemas.classification import Department, Intent


class PriorityPattern(NamedTuple):
    pattern: re.Pattern[str]
    label: str
    priority: int


class StrongKeywordRule(NamedTuple):
    keywords: tuple[re.Pattern[str], ...]
    intent: Intent
    department: Department


def _p(pattern: str, label: str, priority: int) -> PriorityPattern:
    return PriorityPattern(re.compile(pattern, re.IGNORECASE), label, priority)


_POTHOLE = Intent.POTHOLE.value
_LIGHT = Intent.STREETLIGHT.value
_WATER = Intent.WATER_UTILITIES.value
_TRASH = Intent.TRASH_SANITATION.value
_BILLING = Intent.BILLING_PAYMENT.value
_SAFETY = Intent.SAFETY_CONCERN.value

INTENT_PATTERNS: tuple[PriorityPattern, ...] = (
    # Pothole / road damage
    _p(r"pothole", _POTHOLE, 100),
    _p(r"road\s*(damage|repair|broken|crack|issue|problem|condition)", _POTHOLE, 95),
    _p(r"street\s*(damage|broken|crack|condition|repair)", _POTHOLE, 95),
    _p(r"(pavement|asphalt|roadway)\s*(crack|damage|broken|hole|issue)", _POTHOLE, 90),
    _p(r"crater\s*(in|on)\s*(the\s*)?(road|street)", _POTHOLE, 90),
    _p(r"bump\s*(in|on)\s*(the\s*)?(road|street)", _POTHOLE, 85),
    _p(r"hole\s*(in|on)\s*(the\s*)?(road|street|pavement)", _POTHOLE, 85),
    _p(r"bache", _POTHOLE, 100),
    _p(r"hoyo\s*(en\s*)?(la\s*)?(calle|carretera|camino)", _POTHOLE, 95),
    _p(r"calle\s*(dañada|rota|en\s*mal\s*estado)", _POTHOLE, 90),
    _p(r"pavimento\s*(dañado|roto|agrietado)", _POTHOLE, 90),
    _p(r"carretera\s*(dañada|en\s*mal\s*estado)", _POTHOLE, 85),
    # Streetlight
    _p(r"street\s*light", _LIGHT, 90),
    _p(r"lamp\s*post", _LIGHT, 90),
    _p(r"light\s*(pole|post)", _LIGHT, 90),
    _p(r"light\s*(is\s*)?(out|broken|not\s*working|flickering|dim)", _LIGHT, 85),
    _p(r"dark\s*street", _LIGHT, 80),
    _p(r"(street|road|sidewalk)\s*(is\s*)?dark", _LIGHT, 80),
    _p(r"no\s*(street\s*)?light", _LIGHT, 75),
    _p(r"luz\s*(de\s*(la\s*)?)?calle", _LIGHT, 90),
    _p(r"poste\s*(de\s*)?luz", _LIGHT, 90),
    _p(r"l[aá]mpara\s*(de\s*)?(la\s*)?(calle|poste)", _LIGHT, 90),
    _p(r"alumbrado\s*(p[uú]blico)?", _LIGHT, 85),
    _p(r"farol", _LIGHT, 85),
    _p(r"calle\s*(est[aá]\s*)?(oscura|sin\s*luz)", _LIGHT, 80),
    _p(r"no\s*hay\s*luz", _LIGHT, 75),
    # Water / utilities; "water pooling in a pothole" must not land here
    _p(r"water\s*(main|line|pipe|meter|pressure|service|shut|leak|break|burst)", _WATER, 90),
    _p(r"(fire\s*)?hydrant", _WATER, 90),
    _p(r"sewer\s*(line|backup|overflow|smell|issue|problem)", _WATER, 90),
    _p(r"(gas|electric)\s*(leak|outage|issue|problem|smell)", _WATER, 90),
    _p(r"utility\s*(issue|problem|outage|bill)", _WATER, 85),
    _p(r"pipe\s*(leak|burst|broken|freeze|frozen)", _WATER, 85),
    _p(r"(storm\s*)?drain\s*(clog|block|backup|overflow)", _WATER, 80),
    _p(r"flood(ing|ed)?\s*(from|in|my)", _WATER, 75),
    _p(r"no\s*(water|power|electricity|gas)", _WATER, 85),
    _p(r"tuber[ií]a\s*(rota|da[ñn]ada|con\s*fuga)", _WATER, 90),
    _p(r"fuga\s*(de\s*)?(agua|gas)", _WATER, 90),
    _p(r"alcantarilla", _WATER, 90),
    _p(r"hidrante", _WATER, 90),
    _p(r"no\s*hay\s*(agua|luz|gas)", _WATER, 85),
    _p(r"medidor\s*(de\s*)?(agua|luz|gas)", _WATER, 85),
    _p(r"corte\s*(de\s*)?(agua|luz|gas)", _WATER, 85),
    # Trash / sanitation
    _p(r"trash\s*(pickup|collection|not\s*picked|missed|schedule)", _TRASH, 90),
    _p(r"garbage\s*(pickup|collection|not\s*picked|missed|truck)", _TRASH, 90),
    _p(r"recycl(e|ing)\s*(pickup|bin|container|collection)", _TRASH, 90),
    _p(r"missed\s*(trash|garbage|recycl|pickup|collection)", _TRASH, 90),
    _p(r"(trash|garbage|waste)\s*(bin|can|container|dumpster)", _TRASH, 85),
    _p(r"illegal\s*dump", _TRASH, 85),
    _p(r"litter(ing)?\s*(on|in|around)", _TRASH, 75),
    _p(r"bulk\s*(trash|pickup|waste|item)", _TRASH, 80),
    _p(r"basura", _TRASH, 95),
    _p(r"recoger\s*(la\s*)?basura", _TRASH, 90),
    _p(r"recolecci[oó]n\s*(de\s*)?(basura|desechos)", _TRASH, 90),
    _p(r"cami[oó]n\s*(de\s*)?(la\s*)?basura", _TRASH, 90),
    _p(r"no\s*(pas[oó]|vino)\s*(el\s*)?(cami[oó]n|la\s*basura)", _TRASH, 90),
    _p(r"reciclaje", _TRASH, 90),
    _p(r"contenedor\s*(de\s*)?(basura)?", _TRASH, 85),
    _p(r"tiradero\s*ilegal", _TRASH, 85),
    # Billing / payment
    _p(r"(water|utility|trash|tax)\s*bill", _BILLING, 90),
    _p(r"bill\s*(question|issue|problem|too\s*high|incorrect|wrong)", _BILLING, 90),
    _p(r"payment\s*(plan|option|issue|problem|arrangement)", _BILLING, 90),
    _p(r"pay\s*(my\s*)?(bill|balance|account)", _BILLING, 85),
    _p(r"overdue\s*(bill|payment|balance|account)", _BILLING, 85),
    _p(r"(late|past\s*due)\s*(fee|charge|payment)", _BILLING, 85),
    _p(r"account\s*(balance|statement|issue)", _BILLING, 80),
    _p(r"invoice\s*(question|issue|problem)", _BILLING, 80),
    _p(r"factura", _BILLING, 95),
    _p(r"recibo\s*(de\s*)?(agua|luz|gas)", _BILLING, 90),
    _p(r"pagar\s*(mi\s*)?(factura|recibo|cuenta)", _BILLING, 90),
    _p(r"cuenta\s*(de\s*)?(agua|luz|gas)", _BILLING, 90),
    _p(r"cobro\s*(excesivo|incorrecto|alto)", _BILLING, 85),
    _p(r"plan\s*(de\s*)?pago", _BILLING, 85),
    _p(r"deuda|adeudo", _BILLING, 80),
    # Safety concern / suspicious activity
    _p(r"break(ing)?\s*in(to)?", _SAFETY, 95),
    _p(r"burglar(y)?|theft|stolen", _SAFETY, 95),
    _p(r"car\s*(break|theft|stolen|burglar)", _SAFETY, 95),
    _p(r"prowl(er|ing)", _SAFETY, 95),
    _p(r"trespass(er|ing)?", _SAFETY, 90),
    _p(r"vandal(ism|ize|izing)?", _SAFETY, 90),
    _p(r"suspicious\s*(person|activity|vehicle|behavior|individual)", _SAFETY, 95),
    _p(r"checking\s*(car|door|window|lock|handle)", _SAFETY, 90),
    _p(r"trying\s*to\s*(open|break|get\s*into|enter)", _SAFETY, 90),
    _p(r"someone\s*(walking|looking|hanging|lurking)\s*around", _SAFETY, 85),
    _p(r"strange\s*(person|man|woman|individual)", _SAFETY, 85),
    _p(r"looking\s*(in|into|through)\s*(car|window|door)", _SAFETY, 90),
    _p(r"casing\s*(the|my)?\s*(house|car|neighborhood)", _SAFETY, 90),
    _p(r"sospechoso", _SAFETY, 95),
    _p(r"robo|robando|ladr[oó]n", _SAFETY, 95),
    _p(r"intruso", _SAFETY, 95),
    _p(r"entr(ar|ando)\s*(a\s*)?(la\s*)?(fuerza|robar)", _SAFETY, 90),
    _p(r"persona\s*(extra[ñn]a|sospechosa)", _SAFETY, 85),
    _p(r"revisando\s*(carros|puertas|ventanas)", _SAFETY, 90),
)

_WORKS = Department.PUBLIC_WORKS.value
_SAFE = Department.PUBLIC_SAFETY.value
_FINANCE = Department.FINANCE.value
_PARKS = Department.PARKS_RECREATION.value
_SANITATION = Department.SANITATION.value

DEPARTMENT_PATTERNS: tuple[PriorityPattern, ...] = (
    _p(r"pothole|road\s*(damage|repair|issue)|street\s*(damage|repair)", _WORKS, 100),
    _p(r"sidewalk|curb|pavement|asphalt", _WORKS, 90),
    _p(r"street\s*light|lamp\s*post|light\s*pole", _WORKS, 90),
    _p(r"traffic\s*(light|sign|signal)", _WORKS, 90),
    _p(r"storm\s*drain|sewer|water\s*main", _WORKS, 85),
    _p(r"road\s*(sign|marking|line)", _WORKS, 80),
    _p(r"bache|hoyo\s*(en\s*)?(la\s*)?(calle|carretera)", _WORKS, 100),
    _p(r"acera|banqueta|pavimento", _WORKS, 90),
    _p(r"poste\s*(de\s*)?luz|alumbrado", _WORKS, 90),
    _p(r"sem[aá]foro", _WORKS, 90),
    _p(r"alcantarilla|drenaje", _WORKS, 85),
    _p(r"se[ñn]al(amiento)?\s*(de\s*)?(tr[aá]nsito|calle)", _WORKS, 80),
    _p(r"emergency|911", _SAFE, 100),
    _p(r"police|crime|theft|break\s*in", _SAFE, 95),
    _p(r"fire\s*(department|hazard|danger)", _SAFE, 95),
    _p(r"danger(ous)?\s*(condition|situation|area)", _SAFE, 90),
    _p(r"accident|collision|crash", _SAFE, 85),
    _p(r"suspicious\s*(person|activity|vehicle)", _SAFE, 85),
    _p(r"threat|assault|violence", _SAFE, 90),
    _p(r"emergencia", _SAFE, 100),
    _p(r"polic[ií]a|robo|asalto", _SAFE, 95),
    _p(r"bomberos|incendio", _SAFE, 95),
    _p(r"peligro(so)?", _SAFE, 90),
    _p(r"accidente|choque", _SAFE, 85),
    _p(r"sospechoso", _SAFE, 85),
    _p(r"(property|city|county)\s*tax", _FINANCE, 95),
    _p(r"(water|utility|trash)\s*bill", _FINANCE, 90),
    _p(r"payment\s*(plan|option|arrangement)", _FINANCE, 90),
    _p(r"permit\s*(fee|application|cost)", _FINANCE, 85),
    _p(r"license\s*(fee|renewal|cost)", _FINANCE, 85),
    _p(r"fine|citation|penalty", _FINANCE, 80),
    _p(r"impuesto|predial", _FINANCE, 95),
    _p(r"factura|recibo\s*(de\s*)?(agua|luz|gas)", _FINANCE, 90),
    _p(r"plan\s*(de\s*)?pago", _FINANCE, 90),
    _p(r"permiso|licencia", _FINANCE, 85),
    _p(r"multa|infracci[oó]n", _FINANCE, 80),
    _p(r"park\s*(issue|problem|damage|maintenance)", _PARKS, 90),
    _p(r"playground\s*(issue|broken|damage|unsafe)", _PARKS, 90),
    _p(r"recreation\s*(center|facility|program)", _PARKS, 90),
    _p(r"community\s*(center|pool|facility)", _PARKS, 85),
    _p(r"trail\s*(issue|damage|maintenance)", _PARKS, 80),
    _p(r"sports\s*(field|court|facility)", _PARKS, 80),
    _p(r"parque\s*(problema|da[ñn]o|mantenimiento)", _PARKS, 90),
    _p(r"juegos\s*(infantiles)?|[aá]rea\s*de\s*juegos", _PARKS, 90),
    _p(r"centro\s*(comunitario|recreativo)", _PARKS, 85),
    _p(r"alberca|piscina", _PARKS, 85),
    _p(r"sendero|vereda", _PARKS, 80),
    _p(r"trash\s*(pickup|collection|missed)", _SANITATION, 95),
    _p(r"garbage\s*(pickup|collection|truck)", _SANITATION, 95),
    _p(r"recycl(e|ing)\s*(pickup|bin|collection)", _SANITATION, 95),
    _p(r"waste\s*(collection|pickup|management)", _SANITATION, 90),
    _p(r"bulk\s*(pickup|trash|item)", _SANITATION, 85),
    _p(r"dumpster|compost", _SANITATION, 80),
    _p(r"basura|recolecci[oó]n", _SANITATION, 95),
    _p(r"cami[oó]n\s*(de\s*)?(la\s*)?basura", _SANITATION, 95),
    _p(r"reciclaje", _SANITATION, 95),
    _p(r"contenedor", _SANITATION, 85),
    _p(r"composta", _SANITATION, 80),
)


def _rule(keywords: list[str], intent: Intent, department: Department) -> StrongKeywordRule:
    return StrongKeywordRule(tuple(re.compile(k, re.IGNORECASE) for k in keywords), intent, department)


STRONG_KEYWORD_RULES: tuple[StrongKeywordRule, ...] = (
    _rule(
        [
            r"pothole",
            r"pot\s*hole",
            r"bache",
            r"road\s*(damage|repair|broken|crack|issue|problem|condition)",
            r"street\s*(damage|broken|crack|repair|issue|problem)",
            r"hole\s*(in|on)\s*(the\s*)?(road|street|pavement)",
            r"big\s*hole",
            r"(road|street)\s*(has|with)\s*(a\s*)?(hole|crack|damage)",
            r"damaged\s*(road|street|pavement)",
            r"bad\s*(road|street)",
            r"crater",
            r"bump\s*(in|on)\s*(the\s*)?(road|street)",
            r"(road|street)\s+needs?\s+(repair|fixing|work)",
            r"hoyo\s*(en\s*)?(la\s*)?(calle|carretera)",
            r"calle\s*(dañada|rota|en\s*mal\s*estado)",
        ],
        Intent.POTHOLE,
        Department.PUBLIC_WORKS,
    ),
    _rule(
        [r"street\s*light", r"lamp\s*post", r"light\s*pole", r"poste\s*de\s*luz", r"alumbrado"],
        Intent.STREETLIGHT,
        Department.PUBLIC_WORKS,
    ),
    _rule(
        [r"water\s*(leak|main|pipe|meter)", r"hydrant", r"sewer", r"fuga\s*de\s*agua", r"tuber[ií]a"],
        Intent.WATER_UTILITIES,
        Department.PUBLIC_WORKS,
    ),
    _rule(
        [r"trash\s*(pickup|collection|missed)", r"garbage", r"basura", r"recycl", r"reciclaje"],
        Intent.TRASH_SANITATION,
        Department.SANITATION,
    ),
    _rule(
        [r"(water|utility|trash)\s*bill", r"factura", r"payment\s*plan", r"recibo"],
        Intent.BILLING_PAYMENT,
        Department.FINANCE,
    ),
    _rule(
        [
            r"suspicious",
            r"break\s*in",
            r"prowler",
            r"burglar",
            r"checking\s*(car|door|lock)",
            r"trying\s*to\s*(open|break|get\s*into)",
            r"someone\s*(walking|looking|hanging)\s*around",
            r"sospechoso",
            r"intruso",
            r"robo",
            r"ladr[oó]n",
        ],
        Intent.SAFETY_CONCERN,
        Department.PUBLIC_SAFETY,
    ),
)
