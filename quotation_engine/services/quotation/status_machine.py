"""
Quotation life cycle.

    draft --submit_for_review--> review --approve--> approved --convert--> converted
                                   |
                                   +--reject--> rejected

`rejected` and `converted` are terminal. Line items, discounts, versions and
manual overrides may change only while the quotation is still open.
"""

from enum import Enum

from quotation_engine.models.quotation import QuotationStatus
from quotation_engine.services.exceptions import InvalidStateError


class QuotationAction(str, Enum):
    """Everything a caller can attempt on a quotation."""
    SUBMIT_FOR_REVIEW = "submit_for_review"
    APPROVE = "approve"
    REJECT = "reject"
    CONVERT = "convert"
    # Mutations gated on the quotation being open
    ADD_FEATURE = "add_feature"
    UPDATE_FEATURE = "update_feature"
    REMOVE_FEATURE = "remove_feature"
    ADD_DISCOUNT = "add_discount"
    APPROVE_DISCOUNT = "approve_discount"
    REJECT_DISCOUNT = "reject_discount"
    CREATE_VERSION = "create_version"
    MANUAL_OVERRIDE = "manual_override"


TRANSITIONS: dict[tuple[QuotationStatus, QuotationAction], QuotationStatus] = {
    (QuotationStatus.DRAFT, QuotationAction.SUBMIT_FOR_REVIEW): QuotationStatus.REVIEW,
    (QuotationStatus.REVIEW, QuotationAction.APPROVE): QuotationStatus.APPROVED,
    (QuotationStatus.REVIEW, QuotationAction.REJECT): QuotationStatus.REJECTED,
    (QuotationStatus.APPROVED, QuotationAction.CONVERT): QuotationStatus.CONVERTED,
}

TERMINAL_STATES = frozenset({QuotationStatus.REJECTED, QuotationStatus.CONVERTED})

OPEN_STATES = frozenset({
    QuotationStatus.DRAFT,
    QuotationStatus.REVIEW,
    QuotationStatus.APPROVED,
})


def next_status(current: QuotationStatus, action: QuotationAction) -> QuotationStatus:
    """
    Resolve a status transition.

    Raises:
        InvalidStateError: If `action` is not allowed from `current`
    """
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidStateError(current, action.value) from None


def is_terminal(current: QuotationStatus) -> bool:
    return current in TERMINAL_STATES


def ensure_open(current: QuotationStatus, action: QuotationAction) -> None:
    """Reject mutations once the quotation is rejected or converted."""
    if is_terminal(current):
        raise InvalidStateError(current, action.value)


def allowed_actions(current: QuotationStatus) -> list[QuotationAction]:
    """Actions a client may offer for a quotation in `current`."""
    actions = [action for (status, action) in TRANSITIONS if status == current]
    if current in OPEN_STATES:
        actions.extend([
            QuotationAction.ADD_FEATURE,
            QuotationAction.UPDATE_FEATURE,
            QuotationAction.REMOVE_FEATURE,
            QuotationAction.ADD_DISCOUNT,
            QuotationAction.APPROVE_DISCOUNT,
            QuotationAction.REJECT_DISCOUNT,
            QuotationAction.CREATE_VERSION,
            QuotationAction.MANUAL_OVERRIDE,
        ])
    return actions
