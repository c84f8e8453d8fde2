"""Keyword-based query intent analysis.

Decides which analyses a request needs without calling a model, so the
scheduler only runs the stages that contribute to the answer.
"""

from voyage.app.models.intent import QueryIntent

WEATHER_KEYWORDS = (
    "weather",
    "forecast",
    "consumption",
    "conditions",
    "wind",
    "wave",
    "storm",
    "gale",
    "seas",
    "swell",
    "meteorological",
    "climate",
    "sea state",
    "wind speed",
    "wave height",
)

BUNKER_KEYWORDS = (
    "bunker",
    "fuel",
    "port",
    "price",
    "cheapest",
    "cost",
    "refuel",
    "bunkering",
    "fueling",
    "vlsfo",
    "mgo",
    "diesel",
    "optimization",
    "best option",
    "recommendation",
    "compare",
    "savings",
    "refueling",
    "bunkering port",
    "fuel price",
    "fuel cost",
)


def analyze_query_intent(query: str) -> QueryIntent:
    """Classify a free-text query into the analyses it needs."""
    text = query.lower()

    # "already" means the user has a route and is asking about something else
    needs_route = "already" not in text and (
        "route" in text or "distance" in text or ("from" in text and "to" in text)
    )
    needs_weather = any(keyword in text for keyword in WEATHER_KEYWORDS)
    needs_bunker = any(keyword in text for keyword in BUNKER_KEYWORDS)

    if needs_bunker and needs_weather:
        complexity = "high"
    elif needs_bunker or needs_weather:
        complexity = "medium"
    else:
        complexity = "low"

    return QueryIntent(
        needs_route=needs_route,
        needs_weather=needs_weather,
        needs_bunker=needs_bunker,
        complexity=complexity,
    )
