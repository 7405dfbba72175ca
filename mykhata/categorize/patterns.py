"""Built-in merchant keyword patterns and the keyword-density score."""

from __future__ import annotations

# Archetype → keywords found in merchant names
MERCHANT_PATTERNS: dict[str, list[str]] = {
    # Food & Dining
    "restaurant": [
        "restaurant", "cafe", "coffee", "diner", "bistro", "grill", "kitchen",
        "pizza", "burger", "sandwich", "deli", "bakery", "food", "eat",
    ],
    "fast_food": [
        "mcdonalds", "burger king", "kfc", "subway", "taco bell", "pizza hut",
        "dominos", "wendys", "chick-fil-a", "starbucks", "dunkin",
    ],
    "grocery": [
        "grocery", "supermarket", "walmart", "target", "kroger", "safeway",
        "whole foods", "trader joe", "costco", "sam's club", "food lion",
    ],
    # Transportation
    "gas_station": [
        "gas", "fuel", "shell", "exxon", "mobil", "chevron", "bp", "arco",
        "speedway", "7-eleven", "circle k", "valero", "phillips 66",
    ],
    "transportation": [
        "uber", "lyft", "taxi", "bus", "train", "metro", "transit",
        "airline", "airport", "parking", "toll", "dmv",
    ],
    # Shopping
    "retail": [
        "store", "shop", "mall", "outlet", "department", "clothing",
        "fashion", "apparel", "shoes", "jewelry", "electronics",
    ],
    "online_shopping": [
        "amazon", "ebay", "etsy", "shopify", "paypal", "stripe",
        "online", "web", "internet", "digital",
    ],
    "healthcare": [
        "hospital", "clinic", "doctor", "medical", "pharmacy", "cvs",
        "walgreens", "rite aid", "health", "dental", "vision", "urgent care",
    ],
    "entertainment": [
        "movie", "cinema", "theater", "concert", "show", "game", "arcade",
        "bowling", "golf", "fitness", "gym", "sport", "recreation",
    ],
    "utilities": [
        "electric", "gas", "water", "internet", "phone", "cable", "utility",
        "power", "energy", "telecom", "broadband",
    ],
    "financial": [
        "bank", "credit", "loan", "mortgage", "insurance", "investment",
        "atm", "withdrawal", "deposit", "transfer", "payment",
    ],
    "education": [
        "school", "university", "college", "education", "tuition", "book",
        "library", "course", "training", "academy",
    ],
    "home_garden": [
        "home depot", "lowes", "hardware", "garden", "nursery", "furniture",
        "appliance", "repair", "maintenance", "construction",
    ],
}

ARCHETYPE_NAMES: dict[str, str] = {
    "restaurant": "Restaurants",
    "fast_food": "Fast Food",
    "grocery": "Groceries",
    "gas_station": "Gas & Fuel",
    "transportation": "Transportation",
    "retail": "Retail",
    "online_shopping": "Online Shopping",
    "healthcare": "Healthcare",
    "entertainment": "Entertainment",
    "utilities": "Utilities",
    "financial": "Financial",
    "education": "Education",
    "home_garden": "Home & Garden",
}


def keyword_score(merchant: str, keywords: list[str]) -> float:
    """Score how densely ``keywords`` occur in a lowercase merchant name.

    Each contained keyword adds 1.0 for an exact match, 0.8 when the
    merchant starts or ends with it, 0.6 otherwise. The sum is divided by
    the length of the keyword list, so long lists score lower even on a
    perfect match.
    """
    if not keywords:
        return 0.0

    score = 0.0
    matches = 0
    for keyword in keywords:
        if not keyword or keyword not in merchant:
            continue
        matches += 1
        if merchant == keyword:
            score += 1.0
        elif merchant.startswith(keyword) or merchant.endswith(keyword):
            score += 0.8
        else:
            score += 0.6

    return score / len(keywords) if matches else 0.0


def category_keywords(name: str, description: str = "") -> list[str]:
    """Lowercase, de-duplicated word list for a user category."""
    words = f"{name} {description}".lower().split()
    return list(dict.fromkeys(w for w in words if any(c.isalnum() for c in w)))
