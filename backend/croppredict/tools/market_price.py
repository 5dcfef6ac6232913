# backend/croppredict/tools/market_price.py
import time
import logging
import xml.etree.ElementTree as ET
from statistics import median
from typing import Optional, List, Tuple

from langchain_core.tools import tool

from croppredict.config import settings
from croppredict.http import ensure_http_client
from croppredict.schemas import MarketPrice

log = logging.getLogger("croppredict.tools.market_price")

def t(): return time.perf_counter()

# -------------------------------
# Configuration
# -------------------------------
RESOURCE_ID = "9ef84268-d588-465a-a308-a864a43d0070"  # Current Daily Price of Various Commodities
API_BASE = "https://api.data.gov.in/resource"
KG_PER_QUINTAL = 100

# (keywords, data.gov.in commodity name, static INR/kg fallback); first match wins
CROP_TABLE: List[Tuple[Tuple[str, ...], str, float]] = [
    (("corn", "maize"), "Maize", 18),
    (("wheat",), "Wheat", 20),
    (("soybean", "soyabean"), "Soyabean", 35),
    (("rice", "paddy"), "Rice", 55),
    (("potato",), "Potato", 40),
    (("tomato",), "Tomato", 120),
]


def _lookup(crop_type: str) -> Optional[Tuple[str, float]]:
    crop = crop_type.strip().lower()
    for keywords, commodity, static_price in CROP_TABLE:
        if any(k in crop for k in keywords):
            return commodity, static_price
    return None


def static_price_per_kg(crop_type: str) -> float:
    """Fixed fallback price for a crop; unknown crops get the configured default."""
    hit = _lookup(crop_type)
    return float(hit[1]) if hit else float(settings.DEFAULT_PRICE_PER_KG)


async def fetch_mandi_price_per_kg(crop_type: str, limit: int = 100) -> Optional[float]:
    """
    Median modal mandi price for today, converted from INR/quintal to INR/kg.
    Returns None when the API is unconfigured, the crop is unmapped or no records came back.
    """
    if not settings.DATA_GOV_IN_API_KEY:
        return None
    hit = _lookup(crop_type)
    if hit is None:
        return None
    commodity = hit[0]

    params = {
        "api-key": settings.DATA_GOV_IN_API_KEY,
        "format": "xml",
        "limit": str(limit),
        "offset": "0",
        "filters[commodity]": commodity,
    }
    client = await ensure_http_client()
    r = await client.get(f"{API_BASE}/{RESOURCE_ID}", params=params, headers={"Accept": "application/xml"})
    r.raise_for_status()
    root = ET.fromstring(r.text)

    recs_el = root.find("records")
    if recs_el is None:
        return None
    modal: List[float] = []
    for item in recs_el.findall("item"):
        try:
            v = float((item.findtext("modal_price") or "").strip())
        except ValueError:
            continue
        if v > 0:
            modal.append(v)
    if not modal:
        return None
    return round(median(modal) / KG_PER_QUINTAL, 2)


async def get_market_price(crop_type: str) -> MarketPrice:
    """Always returns a complete record; live data is best-effort."""
    start = t()
    live: Optional[float] = None
    try:
        live = await fetch_mandi_price_per_kg(crop_type)
    except Exception as e:
        log.warning("Mandi price lookup failed for %r, using static price: %s", crop_type, e)

    if live is not None:
        price, source = live, "data.gov.in"
    else:
        price, source = static_price_per_kg(crop_type), "static"

    out = MarketPrice(
        price=price,
        currency=settings.PRICE_CURRENCY,
        unit=settings.PRICE_UNIT,
        crop_type=crop_type,
        source=source,
    )
    log.info("⏱️  Market price for %s: %s %s/%s (%s) in %dms",
             crop_type, out.price, out.currency, out.unit, source, round((t() - start) * 1000))
    return out


@tool("getMarketPrice")
async def market_price_tool(cropType: str) -> dict:
    """Returns the current market price for a specified crop type (e.g. Corn, Wheat, Soybeans).
    This tool should be used to determine the monetary value of crops.
    The result has 'price' (number), 'currency' (string), 'unit' (string) and 'cropType' fields."""
    res = await get_market_price(cropType)
    return res.model_dump(by_alias=True, exclude={"source"})
