"""
Action records
==============
One dataclass per player action kind. The engine appends a record to
``GameState.actions_this_round`` whenever an action succeeds; telemetry and
round history read them back. ``ActionResult`` is what every engine action
returns.
"""

from dataclasses import asdict, dataclass, field
from typing import ClassVar, Dict, List, Optional, Type


@dataclass
class ActionResult:
    """Outcome of an engine action; rejected actions leave the state untouched"""
    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class ActionRecord:
    kind: ClassVar[str] = 'action'
    round: int

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['type'] = self.kind
        return data


ACTION_TYPES: Dict[str, Type[ActionRecord]] = {}


def _action(cls):
    ACTION_TYPES[cls.kind] = cls
    return cls


@_action
@dataclass
class AcquireRecord(ActionRecord):
    kind: ClassVar[str] = 'acquire'
    business_id: str = ""
    structure: str = ""
    price: int = 0
    heat: str = 'cold'


@_action
@dataclass
class AcquireTuckInRecord(ActionRecord):
    kind: ClassVar[str] = 'acquire_tuck_in'
    business_id: str = ""
    platform_id: str = ""
    structure: str = ""
    price: int = 0
    outcome: str = ""
    synergies: int = 0


@_action
@dataclass
class DealLostRecord(ActionRecord):
    """A contested deal snatched by a rival bidder"""
    kind: ClassVar[str] = 'deal_lost'
    deal_id: str = ""


@_action
@dataclass
class MergeRecord(ActionRecord):
    kind: ClassVar[str] = 'merge_businesses'
    business_ids: List[str] = field(default_factory=list)
    new_business_id: str = ""
    cost: int = 0
    outcome: str = ""


@_action
@dataclass
class DesignatePlatformRecord(ActionRecord):
    kind: ClassVar[str] = 'designate_platform'
    business_id: str = ""
    cost: int = 0


@_action
@dataclass
class ForgePlatformRecord(ActionRecord):
    kind: ClassVar[str] = 'forge_integrated_platform'
    platform_id: str = ""
    recipe_id: str = ""
    business_ids: List[str] = field(default_factory=list)
    cost: int = 0


@_action
@dataclass
class AddToPlatformRecord(ActionRecord):
    kind: ClassVar[str] = 'add_to_integrated_platform'
    platform_id: str = ""
    business_id: str = ""
    cost: int = 0


@_action
@dataclass
class PlatformDissolvedRecord(ActionRecord):
    kind: ClassVar[str] = 'platform_dissolved'
    platform_id: str = ""


@_action
@dataclass
class ImproveRecord(ActionRecord):
    kind: ClassVar[str] = 'improve'
    business_id: str = ""
    improvement: str = ""
    cost: int = 0
    quality_improved: bool = False


@_action
@dataclass
class StartTurnaroundRecord(ActionRecord):
    kind: ClassVar[str] = 'start_turnaround'
    business_id: str = ""
    program_id: str = ""
    cost: int = 0
    end_round: int = 0


@_action
@dataclass
class TurnaroundResolvedRecord(ActionRecord):
    kind: ClassVar[str] = 'turnaround_resolved'
    business_id: str = ""
    program_id: str = ""
    outcome: str = ""
    new_quality: int = 0


@_action
@dataclass
class UnlockTurnaroundTierRecord(ActionRecord):
    kind: ClassVar[str] = 'unlock_turnaround_tier'
    tier: int = 0
    cost: int = 0


@_action
@dataclass
class PayDebtRecord(ActionRecord):
    kind: ClassVar[str] = 'pay_debt'
    amount: int = 0
    business_id: Optional[str] = None  # None for the holdco loan


@_action
@dataclass
class IssueEquityRecord(ActionRecord):
    kind: ClassVar[str] = 'issue_equity'
    amount: int = 0
    new_shares: float = 0.0
    price_per_share: float = 0.0


@_action
@dataclass
class BuybackRecord(ActionRecord):
    kind: ClassVar[str] = 'buyback'
    amount: int = 0
    shares_repurchased: float = 0.0


@_action
@dataclass
class DistributeRecord(ActionRecord):
    kind: ClassVar[str] = 'distribute'
    amount: int = 0
    founder_share: int = 0


@_action
@dataclass
class SellRecord(ActionRecord):
    kind: ClassVar[str] = 'sell'
    business_id: str = ""
    exit_price: int = 0
    net_proceeds: int = 0
    distressed: bool = False


@_action
@dataclass
class SharedServiceRecord(ActionRecord):
    kind: ClassVar[str] = 'shared_service'
    service_type: str = ""
    active: bool = True
    cost: int = 0


@_action
@dataclass
class SetMAFocusRecord(ActionRecord):
    kind: ClassVar[str] = 'set_ma_focus'
    sector_id: Optional[str] = None
    size_preference: str = 'any'
    sub_type: Optional[str] = None


@_action
@dataclass
class SourceDealsRecord(ActionRecord):
    kind: ClassVar[str] = 'source_deals'
    cost: int = 0
    deals_generated: int = 0
    proactive: bool = False


@_action
@dataclass
class MASourcingRecord(ActionRecord):
    kind: ClassVar[str] = 'ma_sourcing'
    tier: int = 0
    active: bool = True
    cost: int = 0


@_action
@dataclass
class EventChoiceRecord(ActionRecord):
    kind: ClassVar[str] = 'event_choice'
    event_type: str = ""
    choice: str = ""
    business_id: Optional[str] = None
    amount: int = 0


@_action
@dataclass
class RestructureRecord(ActionRecord):
    kind: ClassVar[str] = 'restructure'
    step: str = ""  # emergency_equity / advance / bankruptcy
    amount: int = 0


def record_from_dict(data: Dict) -> ActionRecord:
    """Rebuild a record written by ``ActionRecord.to_dict``"""
    fields = dict(data)
    kind = fields.pop('type', None)
    cls = ACTION_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown action type: {kind}")
    return cls(**fields)
