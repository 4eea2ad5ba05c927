"""
Narrative Service
=================
Flavor text for events, portfolio companies, year-end chronicles and exit
buyers, generated with Gemini. Every call is best-effort: a missing API key, a
network error or an empty response falls back to a static template, and no
engine outcome ever depends on the text.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

import google.generativeai as genai
from dotenv import load_dotenv

from .logging_config import get_logger
from .models import GameState, money
from .sectors import get_sector

logger = get_logger(__name__)

load_dotenv()

DEFAULT_MODEL = "gemini-2.5-flash"
MAX_CONTEXT_CHARS = 4000

# ---------------- STATIC FALLBACKS ----------------

FALLBACK_EVENT_NARRATIVES = {
    'global_bull_market': "Buyers are flush and confident. Valuations across the portfolio tick up as "
                          "strategic acquirers and sponsors compete for quality assets.",
    'global_recession': "Demand softens across the economy. Customers delay spend and every operator "
                        "is asked to do more with less.",
    'global_interest_hike': "The central bank lifts rates again. Floating-rate debt costs more and lenders "
                            "start asking harder questions.",
    'global_interest_cut': "Rates come down. Debt service eases and acquisition financing looks cheaper "
                           "than it has in years.",
    'global_inflation': "Input costs climb faster than prices can follow. Margins feel the squeeze for "
                        "the next couple of years.",
    'global_credit_tightening': "Banks pull back from leveraged lending. New bank debt is off the table "
                                "until credit loosens.",
    'global_financial_crisis': "Credit markets seize up. Exit multiples compress, rates spike and "
                               "distressed sellers start calling.",
    'global_quiet': "A steady year. No shocks, no windfalls, just the business of running businesses.",
    'portfolio_star_joins': "A standout operator joins the team, bringing clients and energy with them.",
    'portfolio_talent_leaves': "A key leader walks out the door and takes some momentum with them.",
    'portfolio_client_signs': "A major new client signs a multi-year contract.",
    'portfolio_client_churns': "A large client moves on. The revenue hole will take time to refill.",
    'portfolio_breakthrough': "A process overhaul pays off with better margins and happier customers.",
    'portfolio_compliance': "Regulators find gaps. Fixing them costs cash and some earnings.",
    'portfolio_referral_deal': "A portfolio CEO makes an introduction to a founder ready to sell.",
    'portfolio_equity_demand': "A top manager asks for equity to stay. Saying no has a price.",
    'portfolio_seller_note_renego': "A former owner offers a discount to be paid out early.",
    'unsolicited_offer': "A buyer calls with an unsolicited offer for one of your companies.",
    'sector_event': "Sector conditions shift, and every company in the space feels it.",
}

GENERIC_EVENT_NARRATIVE = "The market moves on. The holdco adapts."


def get_fallback_event_narrative(event_type: str) -> str:
    return FALLBACK_EVENT_NARRATIVES.get(event_type, GENERIC_EVENT_NARRATIVE)


# ---------------- STALENESS GUARD ----------------

@dataclass(frozen=True)
class NarrativeRequest:
    """Identity of the event a narrative was requested for"""
    round: int
    event_id: str
    event_type: str
    affected_business_id: Optional[str] = None

    @classmethod
    def for_current_event(cls, gs: GameState) -> Optional['NarrativeRequest']:
        event = gs.current_event
        if event is None:
            return None
        return cls(gs.round, event.id, event.type, event.affected_business_id)

    def is_stale(self, gs: GameState) -> bool:
        """True once the game has moved past the event this request was made for"""
        event = gs.current_event
        if event is None or gs.round != self.round:
            return True
        return (event.id != self.event_id or event.type != self.event_type
                or event.affected_business_id != self.affected_business_id)


def apply_event_narrative(gs: GameState, request: NarrativeRequest, text: str) -> bool:
    """Attach narrative text to the current event unless the request went stale.

    Returns:
        True if the text was applied
    """
    if request.is_stale(gs):
        logger.debug("Discarding stale narrative for %s (round %d)", request.event_type, request.round)
        return False
    gs.current_event.narrative = text
    return True


# ---------------- GEMINI SERVICE ----------------

class NarrativeService:
    """Gemini-backed flavor text with static fallbacks.

    Args:
        api_key: Gemini key; defaults to GEMINI_API_KEY from the environment or .env
        model_name: Defaults to HOLDCO_NARRATIVE_MODEL, then DEFAULT_MODEL
        client: Anything with generate_content(prompt) returning an object with .text;
            skips Gemini configuration entirely when given
    """

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None, client=None):
        self.model_name = model_name or os.getenv("HOLDCO_NARRATIVE_MODEL", DEFAULT_MODEL)
        self.client = client
        if self.client is None:
            api_key = api_key or os.getenv("GEMINI_API_KEY")
            if api_key:
                genai.configure(api_key=api_key)
                self.client = genai.GenerativeModel(self.model_name)
            else:
                logger.warning("GEMINI_API_KEY not found; narrative text will use static fallbacks")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _generate(self, prompt: str) -> Optional[str]:
        if self.client is None:
            return None
        try:
            response = self.client.generate_content(prompt[:MAX_CONTEXT_CHARS])
            text = response.text.strip() if hasattr(response, "text") else ""
        except Exception as e:
            logger.warning("Gemini narrative call failed: %s", e)
            return None
        if not text:
            logger.warning("Gemini returned an empty narrative")
            return None
        return text

    def generate_event_narrative(self, event_type: str, effect_text: str, portfolio_context: str,
                                 affected_business_name: Optional[str] = None,
                                 affected_sector: Optional[str] = None,
                                 holdco_name: Optional[str] = None,
                                 all_business_names: Optional[List[str]] = None) -> str:
        """Two or three sentences of news copy for an event"""
        names = ", ".join(all_business_names or []) or "none yet"
        prompt = f"""
You write short, vivid business news copy for a holding-company strategy game.

Event type: {event_type}
Mechanical effect: {effect_text}
Holding company: {holdco_name or "the holdco"} ({portfolio_context})
Affected company: {affected_business_name or "n/a"} ({affected_sector or "n/a"})
Portfolio companies: {names}

Rules:
- Two or three sentences, present tense, no headings.
- Match the tone of the event: good news sounds upbeat, bad news sounds sober.
- Do NOT invent numbers.
"""
        return self._generate(prompt) or get_fallback_event_narrative(event_type)

    def generate_business_update(self, business_name: str, sector_name: str, sub_type: str,
                                 years_owned: int, ebitda_change: str, quality_rating: int,
                                 recent_event_type: Optional[str] = None,
                                 improvements: Optional[str] = None) -> str:
        """One-paragraph operating update for a portfolio company"""
        prompt = f"""
Write a two-sentence operating update for a portfolio company.

Company: {business_name} ({sector_name}, {sub_type})
Years owned: {years_owned}
EBITDA: {ebitda_change}
Quality rating: {quality_rating}/5
Recent event: {recent_event_type or "none"}
Improvements made: {improvements or "none"}

Do NOT invent numbers.
"""
        fallback = f"{business_name} closes year {years_owned} under ownership with EBITDA {ebitda_change}."
        return self._generate(prompt) or fallback

    def generate_year_chronicle(self, gs: GameState) -> str:
        """Year-end summary of the holdco built from the latest round history"""
        if not gs.round_history:
            return f"{gs.holdco_name} is just getting started."
        entry = gs.round_history[-1]
        businesses = ", ".join(b.name for b in gs.active_businesses) or "no operating companies"
        prompt = f"""
Write a three-sentence annual chronicle for a holding company.

Holding company: {gs.holdco_name}
Year: {entry.round} of {gs.max_rounds}
Cash: {money(entry.cash)}
Total debt: {money(entry.total_debt)}
Portfolio EBITDA: {money(entry.total_ebitda)}
Leverage: {entry.net_debt_to_ebitda:.1f}x net debt / EBITDA ({entry.distress_level})
Event of the year: {entry.event_type or "none"}
Actions taken: {", ".join(entry.actions) or "none"}
Portfolio: {businesses}

Do NOT invent numbers beyond those given.
"""
        fallback = (f"Year {entry.round}: {gs.holdco_name} ends the year with {money(entry.total_ebitda)} "
                    f"of EBITDA, {money(entry.cash)} in cash and {money(entry.total_debt)} of debt.")
        text = self._generate(prompt) or fallback
        entry.chronicle = text
        return text

    def generate_buyer_thesis(self, buyer_name: str, business_name: str, sector_id: str,
                              offer_amount: int) -> str:
        """Why a buyer wants one of the portfolio companies"""
        sector = get_sector(sector_id)
        prompt = f"""
In two sentences, explain the investment thesis of a buyer making an offer.

Buyer: {buyer_name}
Target: {business_name} ({sector.name})
Offer: {money(offer_amount)}
"""
        fallback = (f"{buyer_name} sees {business_name} as a platform for growth in "
                    f"{sector.name.lower()} and is willing to pay {money(offer_amount)} to own it.")
        return self._generate(prompt) or fallback
