"""
Maximize Money Gift Card Fetcher

The partner exposes all gift cards through one authenticated JSON endpoint:
{"data": [{"giftCardName": ..., "discount": ..., "stock": ..., ...}, ...]}

This is a regular API, not a scraping target. A failed request is logged
once per cycle and the source contributes nothing; there is no retry.
"""
from typing import Any, List, Optional

import httpx

from voucher_finder.config import settings
from voucher_finder.errors import ParseFailure
from voucher_finder.models import URL_UNAVAILABLE, RawListing, RawListings
from voucher_finder.scrapers.base import SourceAdapter, create_http_client
from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)

API_URL = "https://savemax.maximize.money/api/savemax/giftcard/list-all2"
SITE_URL = "https://www.maximize.money"
SOURCE_NAME = "Maximize money"
SOURCE_ID = "maximize_money"


class MaximizeMoneyAdapter(SourceAdapter):
    """JSON API adapter for Maximize Money gift cards."""

    site_name = SOURCE_NAME
    source_id = SOURCE_ID

    def __init__(self, token: Optional[str] = None, api_url: str = API_URL):
        self.token = settings.MAXIMIZE_TOKEN if token is None else token
        self.api_url = api_url

    def headers(self) -> dict:
        return {
            "Accept": "application/json, text/plain, */*",
            "Authorization": f"Bearer {self.token}",
            "Origin": SITE_URL,
            "Referer": f"{SITE_URL}/",
            "User-Agent": "Mozilla/5.0",
        }

    async def fetch_all(self) -> RawListings:
        """
        Fetch all gift cards in one request.

        Returns:
            One RawListing per card. Empty list on any HTTP, network or
            decoding error, or when no API token is configured.
        """
        if not self.token:
            logger.error(f"{SOURCE_NAME} - MAXIMIZE_TOKEN is not configured, skipping source")
            return []

        try:
            async with create_http_client(self.headers()) as client:
                response = await client.get(self.api_url)
                response.raise_for_status()
                payload = response.json()
            cards = _extract_cards(payload)
        except httpx.HTTPStatusError as e:
            logger.error(f"{SOURCE_NAME} - Fetch failed: HTTP {e.response.status_code}")
            return []
        except httpx.HTTPError as e:
            logger.error(f"{SOURCE_NAME} - Fetch failed: {type(e).__name__}: {e}")
            return []
        except (ValueError, ParseFailure) as e:
            # json.JSONDecodeError is a ValueError
            logger.error(f"{SOURCE_NAME} - Malformed response: {e}")
            return []

        results: RawListings = []
        for card in cards:
            listing = _parse_card(card)
            if listing is None:
                logger.warning(f"{SOURCE_NAME} - Skipping malformed card: {card!r:.200}")
                continue
            results.append(listing)

        logger.info(f"{SOURCE_NAME} - Fetched {len(results)} gift cards")
        return results


def _extract_cards(payload: Any) -> List[Any]:
    """Return the card list of a response, raising ParseFailure for other shapes."""
    if not isinstance(payload, dict):
        raise ParseFailure(f"expected a JSON object, got {type(payload).__name__}")
    cards = payload.get("data")
    if cards is None:
        return []
    if not isinstance(cards, list):
        raise ParseFailure(f"'data' should be a list, got {type(cards).__name__}")
    return cards


def card_url(card: dict) -> str:
    """
    Offer page of a card.

    Examples:
        >>> card_url({"brand": "myntra", "id": 42})
        'https://www.maximize.money/gift-cards/myntra/42'
        >>> card_url({"brand": "myntra"})
        'N/A'
    """
    brand = card.get("brand")
    card_id = card.get("id")
    if not brand or card_id is None or card_id == "":
        return URL_UNAVAILABLE
    return f"{SITE_URL}/gift-cards/{brand}/{card_id}"


def _parse_card(card: Any) -> Optional[RawListing]:
    if not isinstance(card, dict):
        return None

    listing = RawListing(
        title=str(card.get("giftCardName") or ""),
        discount=card.get("discount"),
        image_url=card.get("giftCardLogo") or None,
        url=card_url(card),
    )
    # Only carry the flag when the API reports it
    if card.get("stock") is not None:
        listing["in_stock"] = card["stock"]
    return listing
