"""Proposal validation package."""

from splitbills.validation.validator import ProposalValidator, is_sane_amount

__all__ = ["ProposalValidator", "is_sane_amount"]
