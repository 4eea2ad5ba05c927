"""
Deal structures
===============
Financing options offered for a deal and their execution into an owned
business. Structure terms are seeded from the deal id, so they never change
between two looks at the same deal.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

from .models import ACTIVE, Business, Deal, round_money
from .rng import SeededRng, string_hash

SELLER_NOTE_CASH_PCT = 0.40
BANK_DEBT_CASH_PCT = 0.35
EARNOUT_UPFRONT_PCT = 0.55
LBO_CASH_PCT = 0.25
LBO_NOTE_PCT = 0.35
SELLER_NOTE_BASE_RATE = 0.05

STRUCTURE_LABELS = {
    'all_cash': "All Cash",
    'seller_note': "Seller Note",
    'bank_debt': "Bank Debt",
    'earnout': "Earn-out",
    'seller_note_bank_debt': "LBO (Note + Debt)",
}


@dataclass
class DebtTerms:
    amount: int
    rate: float
    term_rounds: int


@dataclass
class DealStructure:
    type: str
    cash_required: int
    leverage: float
    risk: str  # low / medium / high
    seller_note: Optional[DebtTerms] = None
    bank_debt: Optional[DebtTerms] = None
    earnout_amount: int = 0
    earnout_target: float = 0.0

    @property
    def label(self) -> str:
        return STRUCTURE_LABELS[self.type]


def seller_note_terms(max_rounds: int) -> int:
    return max(4, math.ceil(max_rounds * 0.25))


def bank_debt_terms(max_rounds: int) -> int:
    return max(4, math.ceil(max_rounds * 0.50))


def _leverage(debt: int, ebitda: int) -> float:
    if ebitda <= 0:
        return 0.0
    return round(debt / ebitda, 1)


def generate_deal_structures(deal: Deal, player_cash: int, interest_rate: float,
                             credit_tightening: bool = False, max_rounds: int = 20,
                             no_new_debt: bool = False) -> List[DealStructure]:
    """Every structure the player can currently afford for this deal"""
    price = deal.effective_price
    ebitda = deal.business.ebitda
    terms_rng = SeededRng(string_hash(deal.id))
    note_rate = SELLER_NOTE_BASE_RATE + terms_rng.next() * 0.01
    earnout_offered = terms_rng.next() >= 0.4
    earnout_target = 0.07 + terms_rng.next() * 0.05
    debt_allowed = not credit_tightening and not no_new_debt
    structures = []

    if player_cash >= price:
        structures.append(DealStructure('all_cash', price, 0.0, 'low'))

    note_cash = round_money(price * SELLER_NOTE_CASH_PCT)
    if player_cash >= note_cash and not no_new_debt:
        note = DebtTerms(price - note_cash, note_rate, seller_note_terms(max_rounds))
        structures.append(DealStructure('seller_note', note_cash, _leverage(note.amount, ebitda), 'medium',
                                        seller_note=note))

    bank_cash = round_money(price * BANK_DEBT_CASH_PCT)
    if debt_allowed and player_cash >= bank_cash:
        bank = DebtTerms(price - bank_cash, interest_rate, bank_debt_terms(max_rounds))
        structures.append(DealStructure('bank_debt', bank_cash, _leverage(bank.amount, ebitda), 'high',
                                        bank_debt=bank))

    if deal.business.quality_rating >= 3 and earnout_offered:
        earnout_cash = round_money(price * EARNOUT_UPFRONT_PCT)
        if player_cash >= earnout_cash:
            structures.append(DealStructure('earnout', earnout_cash, 0.0, 'medium',
                                            earnout_amount=price - earnout_cash,
                                            earnout_target=earnout_target))

    if debt_allowed:
        lbo_cash = round_money(price * LBO_CASH_PCT)
        lbo_note = round_money(price * LBO_NOTE_PCT)
        lbo_bank = price - lbo_cash - lbo_note
        if player_cash >= lbo_cash and lbo_bank > 0:
            structures.append(DealStructure(
                'seller_note_bank_debt', lbo_cash, _leverage(lbo_note + lbo_bank, ebitda), 'high',
                seller_note=DebtTerms(lbo_note, note_rate, seller_note_terms(max_rounds)),
                bank_debt=DebtTerms(lbo_bank, interest_rate, bank_debt_terms(max_rounds)),
            ))

    return structures


def find_structure(structures: List[DealStructure], structure_type: str) -> Optional[DealStructure]:
    for structure in structures:
        if structure.type == structure_type:
            return structure
    return None


def execute_deal_structure(deal: Deal, structure: DealStructure, round_number: int) -> Business:
    """Turn the deal's business into an owned opco carrying the structure's debt"""
    business = deal.business
    business.acquisition_round = round_number
    business.improvements = []
    business.status = ACTIVE
    business.acquisition_price = deal.effective_price
    business.total_acquisition_cost = deal.effective_price

    note = structure.seller_note
    business.seller_note_balance = note.amount if note else 0
    business.seller_note_rate = note.rate if note else 0.0
    business.seller_note_rounds_remaining = note.term_rounds if note else 0

    bank = structure.bank_debt
    business.bank_debt_balance = bank.amount if bank else 0
    business.bank_debt_rate = bank.rate if bank else 0.0
    business.bank_debt_rounds_remaining = bank.term_rounds if bank else 0

    business.earnout_remaining = structure.earnout_amount
    business.earnout_target = structure.earnout_target

    operator = business.due_diligence.operator_quality
    if operator == 'weak':
        business.integration_rounds_remaining = 3
    elif operator == 'strong':
        business.integration_rounds_remaining = 1
    return business
